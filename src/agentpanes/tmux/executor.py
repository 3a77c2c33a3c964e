"""Action executor.

Turns decided pane actions into tmux commands and reports success. After a
topology change (spawn or close) the main pane width is re-asserted against
a freshly queried snapshot, since the geometry the decision was based on is
no longer valid.
"""

import shlex
from dataclasses import dataclass, field

from .. import config
from ..config import TmuxConfig
from ..layout.grid import compute_main_pane_width
from ..layout.types import (
    CloseAction,
    PaneAction,
    ReplaceAction,
    SpawnAction,
    WindowState,
    describe_action,
)
from ..telemetry import get_logger, metrics

from .client import TmuxClient
from .snapshot import query_window_state

logger = get_logger(__name__)


@dataclass
class ActionResult:
    success: bool
    pane_id: str | None = None
    error: str | None = None


@dataclass
class ExecuteContext:
    """Per-call execution context.

    Attributes:
        window_state: Snapshot the actions were decided on
        source_pane_id: Pane used to re-query the window after mutations
    """
    window_state: WindowState
    source_pane_id: str | None = None


@dataclass
class ExecuteActionsResult:
    success: bool
    spawned_pane_id: str | None = None
    results: list[tuple[PaneAction, ActionResult]] = field(default_factory=list)


class ActionExecutor:
    """Executes PaneActions against tmux."""

    def __init__(
        self,
        client: TmuxClient,
        tmux_config: TmuxConfig,
        server_url: str,
        attach_command: str = config.ATTACH_COMMAND_TEMPLATE,
    ):
        """Initialize ActionExecutor.

        Args:
            client: TmuxClient used for every command
            tmux_config: User configuration (main pane sizing)
            server_url: Agent runtime URL passed to the attach command
            attach_command: Template with {server_url} and {session_id}
        """
        self._client = client
        self._config = tmux_config
        self._server_url = server_url
        self._attach_command = attach_command

    def build_attach_command(self, session_id: str) -> str:
        return self._attach_command.format(
            server_url=shlex.quote(self._server_url),
            session_id=shlex.quote(session_id),
        )

    async def execute_action(self, action: PaneAction, ctx: ExecuteContext) -> ActionResult:
        match action:
            case CloseAction():
                return await self._close(action, ctx)
            case ReplaceAction():
                return await self._replace(action)
            case SpawnAction():
                return await self._spawn(action, ctx)
        raise TypeError(f"unknown pane action: {action!r}")

    async def execute_actions(
        self, actions: list[PaneAction], ctx: ExecuteContext
    ) -> ExecuteActionsResult:
        """Execute actions in order, stopping at the first failure."""
        results: list[tuple[PaneAction, ActionResult]] = []
        spawned_pane_id: str | None = None

        for action in actions:
            logger.debug(f"[Executor] executing {describe_action(action)}")
            result = await self.execute_action(action, ctx)
            results.append((action, result))

            if not result.success:
                logger.warning(f"[Executor] {action.kind} failed: {result.error}")
                return ExecuteActionsResult(
                    success=False, spawned_pane_id=spawned_pane_id, results=results
                )

            if isinstance(action, (SpawnAction, ReplaceAction)) and result.pane_id:
                spawned_pane_id = result.pane_id

        return ExecuteActionsResult(success=True, spawned_pane_id=spawned_pane_id, results=results)

    async def close_pane(self, pane_id: str, session_id: str, ctx: ExecuteContext) -> ActionResult:
        return await self._close(CloseAction(pane_id=pane_id, session_id=session_id), ctx)

    async def _spawn(self, action: SpawnAction, ctx: ExecuteContext) -> ActionResult:
        pane_id = await self._client.split_window(
            action.target_pane_id,
            action.split_direction.value,
            self.build_attach_command(action.session_id),
        )
        if pane_id is None:
            return ActionResult(success=False, error=f"split-window on {action.target_pane_id} failed")

        await self._client.rename_pane(pane_id, action.description)
        await self._enforce_main_pane_width(ctx)
        logger.info(f"[Executor] spawned {pane_id} for session {action.session_id}")
        return ActionResult(success=True, pane_id=pane_id)

    async def _replace(self, action: ReplaceAction) -> ActionResult:
        ok = await self._client.respawn_pane(
            action.pane_id, self.build_attach_command(action.new_session_id)
        )
        if not ok:
            return ActionResult(success=False, error=f"respawn-pane on {action.pane_id} failed")

        await self._client.rename_pane(action.pane_id, action.description)
        logger.info(
            f"[Executor] replaced {action.old_session_id} with {action.new_session_id} "
            f"in {action.pane_id}"
        )
        return ActionResult(success=True, pane_id=action.pane_id)

    async def _close(self, action: CloseAction, ctx: ExecuteContext) -> ActionResult:
        await self._client.send_interrupt(action.pane_id)
        ok = await self._client.kill_pane(action.pane_id)
        if not ok:
            return ActionResult(success=False, error=f"kill-pane on {action.pane_id} failed")

        if config.METRICS_ENABLED:
            metrics.inc("pane.closed")
        await self._enforce_main_pane_width(ctx)
        return ActionResult(success=True)

    async def _enforce_main_pane_width(self, ctx: ExecuteContext) -> None:
        source = ctx.source_pane_id
        if source is None and ctx.window_state.main_pane is not None:
            source = ctx.window_state.main_pane.pane_id
        if source is None:
            return

        state = await query_window_state(self._client, source)
        if state is None or state.main_pane is None:
            logger.debug("[Executor] skip main pane resize: no fresh snapshot")
            return
        if not state.agent_panes:
            return

        width = compute_main_pane_width(state.window_width, self._config.capacity())
        if width <= 0 or width == state.main_pane.width:
            return
        await self._client.resize_pane_width(state.main_pane.pane_id, width)
        logger.debug(
            f"[Executor] main pane {state.main_pane.pane_id} resized "
            f"{state.main_pane.width} -> {width} (window {state.window_width})"
        )
