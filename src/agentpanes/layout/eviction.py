"""Eviction policy: the least-recently-created tracked agent pane goes first."""

from .types import PaneInfo, SessionMapping


def find_oldest_mapping(
    agent_panes: list[PaneInfo],
    session_mappings: list[SessionMapping],
) -> SessionMapping | None:
    """Oldest mapping whose pane is still live. Untracked panes never qualify."""
    live_ids = {pane.pane_id for pane in agent_panes}
    candidates = [m for m in session_mappings if m.pane_id in live_ids]
    if not candidates:
        return None
    return min(candidates, key=lambda m: m.created_at)


def find_oldest_agent_pane(
    agent_panes: list[PaneInfo],
    session_mappings: list[SessionMapping],
) -> PaneInfo | None:
    mapping = find_oldest_mapping(agent_panes, session_mappings)
    if mapping is None:
        return None
    for pane in agent_panes:
        if pane.pane_id == mapping.pane_id:
            return pane
    return None
