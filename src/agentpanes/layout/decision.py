"""Decision engine.

Turns a window snapshot plus a spawn request into an ordered list of pane
actions. Capacity problems are reported through ``SpawnDecision.reason`` and
never raised; the caller defers the session instead.
"""

from ..config import DIVIDER_SIZE
from .eviction import find_oldest_agent_pane, find_oldest_mapping
from .split import find_minimal_evictions, is_splittable_at_count
from .target import find_spawn_target, initial_split_direction
from .types import (
    CapacityConfig,
    CloseAction,
    PaneAction,
    ReplaceAction,
    SessionMapping,
    SpawnAction,
    SpawnDecision,
    WindowState,
)

REASON_NO_MAIN_PANE = "no main pane found"
REASON_MAIN_TOO_SMALL = "mainPane too small to split"
REASON_NO_TARGET = "no split target available (defer attach)"
REASON_CLOSED_ONE = "closed 1 pane to make room for split"
REASON_REPLACED_OLDEST = "replaced oldest pane (no split possible)"


def agent_area_width(state: WindowState) -> int:
    """Columns right of the main pane's reported width, minus the divider."""
    if state.main_pane is None:
        return 0
    return max(0, state.window_width - state.main_pane.width - DIVIDER_SIZE)


def decide_spawn_actions(
    state: WindowState,
    session_id: str,
    description: str,
    config: CapacityConfig,
    session_mappings: list[SessionMapping],
) -> SpawnDecision:
    """Decide how to make room for ``session_id``.

    Args:
        state: Fresh window snapshot.
        session_id: Session that wants a pane.
        description: Pane title for the new session.
        config: Capacity configuration.
        session_mappings: Tracked session → pane mappings (read-only).

    Returns:
        SpawnDecision. Actions are ordered; a Close always precedes the
        Spawn that uses the freed space.
    """
    main_pane = state.main_pane
    if main_pane is None:
        return SpawnDecision.reject(REASON_NO_MAIN_PANE)

    min_width = config.agent_pane_min_width
    area_width = agent_area_width(state)
    current_count = len(state.agent_panes)

    if area_width < min_width and current_count > 0:
        return SpawnDecision.reject(
            f"window too small for agent panes: {state.window_width}x{state.window_height}"
        )

    if current_count == 0:
        target = find_spawn_target(state, config)
        if target is None:
            return SpawnDecision.reject(REASON_MAIN_TOO_SMALL)
        return SpawnDecision(
            can_spawn=True,
            actions=[
                SpawnAction(
                    session_id=session_id,
                    description=description,
                    target_pane_id=target.target_pane_id,
                    split_direction=target.split_direction,
                )
            ],
        )

    if config.is_strict or is_splittable_at_count(area_width, current_count, min_width):
        target = find_spawn_target(state, config)
        if target is not None:
            return SpawnDecision(
                can_spawn=True,
                actions=[
                    SpawnAction(
                        session_id=session_id,
                        description=description,
                        target_pane_id=target.target_pane_id,
                        split_direction=target.split_direction,
                    )
                ],
            )

    # 固定轴布局不驱逐，交给延迟队列
    if config.is_strict:
        return SpawnDecision.reject(REASON_NO_TARGET)

    oldest_pane = find_oldest_agent_pane(state.agent_panes, session_mappings)
    oldest_mapping = find_oldest_mapping(state.agent_panes, session_mappings)
    if oldest_pane is None or oldest_mapping is None:
        return SpawnDecision.reject(REASON_NO_TARGET)

    evictions = find_minimal_evictions(area_width, current_count, min_width)
    if evictions == 1:
        return SpawnDecision(
            can_spawn=True,
            actions=[
                CloseAction(pane_id=oldest_pane.pane_id, session_id=oldest_mapping.session_id),
                SpawnAction(
                    session_id=session_id,
                    description=description,
                    target_pane_id=main_pane.pane_id,
                    split_direction=initial_split_direction(config),
                ),
            ],
            reason=REASON_CLOSED_ONE,
        )

    return SpawnDecision(
        can_spawn=True,
        actions=[
            ReplaceAction(
                pane_id=oldest_pane.pane_id,
                new_session_id=session_id,
                description=description,
                old_session_id=oldest_mapping.session_id,
            )
        ],
        reason=REASON_REPLACED_OLDEST,
    )


def decide_close_action(
    state: WindowState,
    session_id: str,
    session_mappings: list[SessionMapping],
) -> PaneAction | None:
    """Close action for the session's pane, or None when it is already gone."""
    mapping = next((m for m in session_mappings if m.session_id == session_id), None)
    if mapping is None:
        return None
    if state.find_agent_pane(mapping.pane_id) is None:
        return None
    return CloseAction(pane_id=mapping.pane_id, session_id=session_id)
