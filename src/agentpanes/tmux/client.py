"""Tmux client for subprocess-based tmux interaction."""

import asyncio
import os

from .. import config
from ..telemetry import get_logger, metrics

logger = get_logger(__name__)

# Use tab as delimiter to avoid conflicts with spaces/colons in pane titles
_FIELD_SEP = "\t"

_PANE_FIELDS = [
    "#{pane_id}", "#{pane_width}", "#{pane_height}", "#{pane_left}", "#{pane_top}",
    "#{pane_title}", "#{pane_active}", "#{window_width}", "#{window_height}",
]


def is_inside_tmux() -> bool:
    """Whether this process runs inside a tmux client."""
    return bool(os.environ.get("TMUX"))


def get_current_pane_id() -> str | None:
    """Pane id of the pane this process was started in (e.g. "%3")."""
    return os.environ.get("TMUX_PANE") or None


class TmuxClient:
    """Client for interacting with tmux via subprocess commands.

    Provides async methods for:
    - Listing the panes of the window that holds a reference pane
    - Splitting, respawning, killing and resizing panes
    - Setting pane titles
    """

    def __init__(self, socket_path: str | None = None, binary: str = "tmux"):
        """Initialize TmuxClient.

        Args:
            socket_path: Optional tmux socket path. If None, uses default socket.
            binary: tmux executable name or path.
        """
        self._socket_path = socket_path
        self._binary = binary

    async def run(self, *args: str) -> str | None:
        """Execute a tmux command.

        Args:
            *args: Command arguments (e.g., "list-panes", "-t", "%0", "-F", "...")

        Returns:
            Command stdout on success, None on failure.
        """
        cmd = [self._binary]
        if self._socket_path:
            cmd.extend(["-S", self._socket_path])
        cmd.extend(args)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()

            if proc.returncode != 0:
                logger.warning(f"tmux command failed: {' '.join(cmd)}: {stderr.decode().strip()}")
                if config.METRICS_ENABLED:
                    metrics.inc("tmux.errors", {"command": args[0] if args else ""})
                return None

            return stdout.decode()

        except Exception as e:
            logger.error(f"tmux subprocess error: {e}")
            if config.METRICS_ENABLED:
                metrics.inc("tmux.errors", {"command": args[0] if args else ""})
            return None

    async def list_window_panes(self, source_pane_id: str) -> list[dict] | None:
        """List panes in the window containing ``source_pane_id``.

        Returns:
            List of pane dicts with keys:
            - pane_id: str (e.g., "%0")
            - width, height, left, top: int
            - title: str
            - active: bool
            - window_width, window_height: int
            None when the command fails.
        """
        output = await self.run(
            "list-panes", "-t", source_pane_id, "-F", _FIELD_SEP.join(_PANE_FIELDS)
        )
        if output is None:
            return None

        panes = []
        for line in output.strip().split("\n"):
            if not line:
                continue
            parts = line.split(_FIELD_SEP)
            if len(parts) < len(_PANE_FIELDS):
                logger.warning(f"Unexpected pane line: {line!r}")
                continue
            try:
                panes.append({
                    "pane_id": parts[0],
                    "width": int(parts[1]),
                    "height": int(parts[2]),
                    "left": int(parts[3]),
                    "top": int(parts[4]),
                    "title": parts[5],
                    "active": parts[6] == "1",
                    "window_width": int(parts[7]),
                    "window_height": int(parts[8]),
                })
            except ValueError as e:
                logger.warning(f"Failed to parse pane line: {line!r}: {e}")

        return panes

    async def split_window(
        self, target_pane_id: str, direction: str, command: str
    ) -> str | None:
        """Split a pane and run ``command`` in the new pane.

        Args:
            target_pane_id: Pane to split
            direction: "-h" (side by side) or "-v" (stacked)
            command: Shell command for the new pane

        Returns:
            The new pane id, or None on failure.
        """
        output = await self.run(
            "split-window", direction, "-d", "-t", target_pane_id,
            "-P", "-F", "#{pane_id}", command,
        )
        if not output:
            return None
        pane_id = output.strip()
        return pane_id or None

    async def respawn_pane(self, pane_id: str, command: str) -> bool:
        """Kill whatever runs in a pane and start ``command`` in its place."""
        result = await self.run("respawn-pane", "-k", "-t", pane_id, command)
        return result is not None

    async def kill_pane(self, pane_id: str) -> bool:
        result = await self.run("kill-pane", "-t", pane_id)
        return result is not None

    async def send_interrupt(self, pane_id: str) -> bool:
        """Send Ctrl-C to a pane so its process can exit cleanly."""
        result = await self.run("send-keys", "-t", pane_id, "C-c")
        return result is not None

    async def resize_pane_width(self, pane_id: str, width: int) -> bool:
        result = await self.run("resize-pane", "-t", pane_id, "-x", str(width))
        return result is not None

    async def rename_pane(self, pane_id: str, name: str) -> bool:
        """Rename a pane (set its title).

        Returns:
            True on success, False on failure.
        """
        result = await self.run("select-pane", "-t", pane_id, "-T", name)
        return result is not None
