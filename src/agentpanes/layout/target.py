"""Spawn target finder.

Decides which existing pane to split, and in which direction, to make room
for one more agent pane.

Strict layouts (main-vertical / main-horizontal) always grow along one
axis: the first agent pane splits the main pane, every later one splits an
agent pane along the layout's followup direction. The free grid layout maps
panes onto a logical grid and splits the neighbour of the first empty slot.
"""

from dataclasses import dataclass

from .grid import GridPlan, GridSlot, compute_grid_plan, map_pane_to_slot
from .split import can_split_pane
from .types import CapacityConfig, LayoutMode, PaneInfo, SplitDirection, WindowState


@dataclass(frozen=True)
class SpawnTarget:
    target_pane_id: str
    split_direction: SplitDirection


def initial_split_direction(config: CapacityConfig) -> SplitDirection:
    """Direction of the very first split of the main pane."""
    if config.layout is LayoutMode.MAIN_HORIZONTAL:
        return SplitDirection.VERTICAL
    return SplitDirection.HORIZONTAL


def followup_split_direction(config: CapacityConfig) -> SplitDirection:
    """Direction used for every later split in a strict layout."""
    if config.layout is LayoutMode.MAIN_HORIZONTAL:
        return SplitDirection.HORIZONTAL
    return SplitDirection.VERTICAL


def virtual_main_pane(state: WindowState) -> PaneInfo | None:
    """Main pane widened to the full window.

    Before any agent pane exists tmux may already report the main pane at a
    fraction of the window; the first split is judged against the full width.
    """
    if state.main_pane is None:
        return None
    return state.main_pane.with_width(state.window_width)


def _sort_for_strict_layout(panes: list[PaneInfo], config: CapacityConfig) -> list[PaneInfo]:
    if config.layout is LayoutMode.MAIN_HORIZONTAL:
        return sorted(panes, key=lambda p: (p.left, p.top))
    return sorted(panes, key=lambda p: (p.top, p.left))


def _build_occupancy(
    agent_panes: list[PaneInfo],
    plan: GridPlan,
    main_pane_width: int,
) -> dict[GridSlot, PaneInfo]:
    occupancy: dict[GridSlot, PaneInfo] = {}
    for pane in agent_panes:
        occupancy[map_pane_to_slot(pane, plan, main_pane_width)] = pane
    return occupancy


def _first_empty_slot(occupancy: dict[GridSlot, PaneInfo], plan: GridPlan) -> GridSlot:
    for row in range(plan.rows):
        for col in range(plan.cols):
            slot = GridSlot(row=row, col=col)
            if slot not in occupancy:
                return slot
    return GridSlot(row=plan.rows - 1, col=plan.cols - 1)


def _find_strict_target(state: WindowState, config: CapacityConfig) -> SpawnTarget | None:
    direction = followup_split_direction(config)
    for pane in _sort_for_strict_layout(state.agent_panes, config):
        if can_split_pane(pane, direction, config.agent_pane_min_width):
            return SpawnTarget(pane.pane_id, direction)
    return None


def _find_grid_target(state: WindowState, config: CapacityConfig) -> SpawnTarget | None:
    min_width = config.agent_pane_min_width
    main_width = state.main_pane.width if state.main_pane is not None else 0
    plan = compute_grid_plan(
        state.window_width,
        state.window_height,
        len(state.agent_panes) + 1,
        config,
        main_width,
    )
    occupancy = _build_occupancy(state.agent_panes, plan, main_width)
    slot = _first_empty_slot(occupancy, plan)

    left = occupancy.get(GridSlot(row=slot.row, col=slot.col - 1))
    if left is not None and can_split_pane(left, SplitDirection.HORIZONTAL, min_width):
        return SpawnTarget(left.pane_id, SplitDirection.HORIZONTAL)

    above = occupancy.get(GridSlot(row=slot.row - 1, col=slot.col))
    if above is not None and can_split_pane(above, SplitDirection.VERTICAL, min_width):
        return SpawnTarget(above.pane_id, SplitDirection.VERTICAL)

    by_position = sorted(state.agent_panes, key=lambda p: (p.left, p.top))
    for direction in (SplitDirection.VERTICAL, SplitDirection.HORIZONTAL):
        for pane in by_position:
            if can_split_pane(pane, direction, min_width):
                return SpawnTarget(pane.pane_id, direction)
    return None


def find_spawn_target(state: WindowState, config: CapacityConfig) -> SpawnTarget | None:
    """Pane to split for one more agent pane, or None when nothing fits."""
    if state.main_pane is None:
        return None

    if not state.agent_panes:
        direction = initial_split_direction(config)
        main = virtual_main_pane(state)
        if main is not None and can_split_pane(main, direction, config.agent_pane_min_width):
            return SpawnTarget(state.main_pane.pane_id, direction)
        return None

    if config.is_strict:
        return _find_strict_target(state, config)
    return _find_grid_target(state, config)
