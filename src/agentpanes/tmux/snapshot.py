"""Window snapshot builder.

Converts tmux pane listings into WindowState structures.
"""


from ..layout.types import PaneInfo, WindowState
from ..telemetry import get_logger

from .client import TmuxClient

logger = get_logger(__name__)


class WindowStateBuilder:
    """Builds WindowState from the pane dicts of one tmux window.

    The main pane is the leftmost pane, then the widest, then the topmost;
    a remaining tie goes to the querying pane. The choice only depends on
    geometry, so an unchanged layout always yields the same main pane.
    """

    def build(self, panes: list[dict], source_pane_id: str) -> WindowState | None:
        """Build WindowState from tmux data.

        Args:
            panes: Pane dicts from TmuxClient.list_window_panes()
            source_pane_id: Pane that issued the query

        Returns:
            WindowState, or None when no usable pane was listed.
        """
        window_width = 0
        window_height = 0
        pane_infos: list[PaneInfo] = []

        for pane in panes:
            try:
                pane_infos.append(
                    PaneInfo(
                        pane_id=pane["pane_id"],
                        width=int(pane["width"]),
                        height=int(pane["height"]),
                        left=int(pane["left"]),
                        top=int(pane["top"]),
                        title=pane.get("title", ""),
                        is_active=bool(pane.get("active", False)),
                    )
                )
                window_width = int(pane.get("window_width", window_width))
                window_height = int(pane.get("window_height", window_height))
            except (KeyError, ValueError, TypeError):
                # Skip malformed pane data
                continue

        if not pane_infos:
            return None

        pane_infos.sort(key=lambda p: (p.left, p.top))
        main_pane = self._select_main_pane(pane_infos, source_pane_id)
        agent_panes = [p for p in pane_infos if p.pane_id != main_pane.pane_id]

        logger.debug(
            f"[Snapshot] window {window_width}x{window_height} main={main_pane.pane_id} "
            f"agents={len(agent_panes)}"
        )
        return WindowState(
            window_width=window_width,
            window_height=window_height,
            main_pane=main_pane,
            agent_panes=agent_panes,
        )

    @staticmethod
    def _select_main_pane(panes: list[PaneInfo], source_pane_id: str) -> PaneInfo:
        selected = panes[0]
        for pane in panes[1:]:
            if pane.left != selected.left:
                if pane.left < selected.left:
                    selected = pane
            elif pane.width != selected.width:
                if pane.width > selected.width:
                    selected = pane
            elif pane.top != selected.top:
                if pane.top < selected.top:
                    selected = pane
            elif pane.pane_id == source_pane_id:
                selected = pane
        return selected


async def query_window_state(client: TmuxClient, source_pane_id: str) -> WindowState | None:
    """Fresh snapshot of the window holding ``source_pane_id``.

    Returns:
        WindowState, or None when tmux cannot be queried.
    """
    panes = await client.list_window_panes(source_pane_id)
    if panes is None:
        logger.warning(f"[Snapshot] list-panes failed for {source_pane_id}")
        return None
    state = WindowStateBuilder().build(panes, source_pane_id)
    if state is None:
        logger.warning(f"[Snapshot] no panes listed for {source_pane_id}")
    return state
