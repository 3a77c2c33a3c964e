"""Tmux boundary: subprocess client, window snapshots and action execution."""

from .client import TmuxClient, get_current_pane_id, is_inside_tmux
from .executor import ActionExecutor, ActionResult, ExecuteActionsResult, ExecuteContext
from .snapshot import WindowStateBuilder, query_window_state

__all__ = [
    "ActionExecutor",
    "ActionResult",
    "ExecuteActionsResult",
    "ExecuteContext",
    "TmuxClient",
    "WindowStateBuilder",
    "get_current_pane_id",
    "is_inside_tmux",
    "query_window_state",
]
