"""Capacity and grid planning.

Pure functions that size the agent area next to the main pane and map
existing panes onto a logical grid of equally sized slots. Every width
calculation charges one cell per divider, matching how tmux lays out splits.
"""

import math
from dataclasses import dataclass

from ..config import (
    DIVIDER_SIZE,
    MAIN_PANE_RATIO,
    MAIN_PANE_SIZE_MAX,
    MAIN_PANE_SIZE_MIN,
    MAX_GRID_SIZE,
    MIN_PANE_HEIGHT,
    MIN_PANE_WIDTH,
    clamp,
)
from .types import CapacityConfig, PaneInfo


@dataclass(frozen=True)
class GridCapacity:
    cols: int
    rows: int
    total: int


@dataclass(frozen=True)
class GridSlot:
    row: int
    col: int


@dataclass(frozen=True)
class GridPlan:
    """Chosen grid shape. A 1x1 plan with zero slot size means nothing fits."""
    cols: int
    rows: int
    slot_width: int
    slot_height: int

    @property
    def is_degenerate(self) -> bool:
        return self.slot_width == 0 or self.slot_height == 0


def get_main_pane_size_percent(config: CapacityConfig | None = None) -> int:
    if config is None:
        return int(MAIN_PANE_RATIO * 100)
    return clamp(config.main_pane_size, MAIN_PANE_SIZE_MIN, MAIN_PANE_SIZE_MAX)


def compute_main_pane_width(window_width: int, config: CapacityConfig | None = None) -> int:
    """Width the main pane should occupy for this window.

    Without a config the main pane takes half the window. With one, the
    configured percentage is raised to ``main_pane_min_width`` and capped so
    that at least ``agent_pane_min_width`` columns remain for agents.
    """
    safe_width = max(0, window_width)
    if config is None:
        return math.floor(safe_width * MAIN_PANE_RATIO)

    percent = get_main_pane_size_percent(config)
    desired = math.floor((safe_width - DIVIDER_SIZE) * percent / 100)
    max_width = max(0, safe_width - DIVIDER_SIZE - config.agent_pane_min_width)
    return clamp(max(desired, config.main_pane_min_width), 0, max_width)


def compute_agent_area_width(window_width: int, config: CapacityConfig | None = None) -> int:
    safe_width = max(0, window_width)
    if config is None:
        return math.floor(safe_width * (1 - MAIN_PANE_RATIO))
    main_width = compute_main_pane_width(safe_width, config)
    return max(0, safe_width - DIVIDER_SIZE - main_width)


def _available_width(
    window_width: int,
    config: CapacityConfig | None,
    main_pane_width: int | None,
) -> int:
    if main_pane_width is not None:
        return max(0, window_width - main_pane_width - DIVIDER_SIZE)
    return compute_agent_area_width(window_width, config)


def calculate_capacity(
    window_width: int,
    window_height: int,
    min_pane_width: int = MIN_PANE_WIDTH,
    main_pane_width: int | None = None,
) -> GridCapacity:
    """How many minimum-size panes fit beside the main pane.

    Args:
        window_width: Window width in cells.
        window_height: Window height in cells.
        min_pane_width: Minimum width of one agent pane.
        main_pane_width: Actual main pane width. When omitted the agent area
            is the default half of the window.

    Returns:
        GridCapacity with cols and rows each capped at MAX_GRID_SIZE.
    """
    available_width = _available_width(window_width, None, main_pane_width)
    min_width = max(1, min_pane_width)
    cols = min(
        MAX_GRID_SIZE,
        max(0, (available_width + DIVIDER_SIZE) // (min_width + DIVIDER_SIZE)),
    )
    rows = min(
        MAX_GRID_SIZE,
        max(0, (window_height + DIVIDER_SIZE) // (MIN_PANE_HEIGHT + DIVIDER_SIZE)),
    )
    return GridCapacity(cols=cols, rows=rows, total=cols * rows)


def compute_grid_plan(
    window_width: int,
    window_height: int,
    pane_count: int,
    config: CapacityConfig | None = None,
    main_pane_width: int | None = None,
) -> GridPlan:
    """Smallest grid holding ``pane_count`` panes; fewer rows wins ties."""
    available_width = _available_width(window_width, config, main_pane_width)
    min_width = config.agent_pane_min_width if config is not None else MIN_PANE_WIDTH
    capacity = calculate_capacity(
        window_width,
        window_height,
        min_width,
        window_width - available_width - DIVIDER_SIZE,
    )
    max_cols, max_rows = capacity.cols, capacity.rows

    if max_cols == 0 or max_rows == 0 or pane_count <= 0:
        return GridPlan(cols=1, rows=1, slot_width=0, slot_height=0)

    # rows ascend, so the first grid found at a given area has the fewest rows
    best: tuple[int, int] | None = None
    best_area = math.inf
    for rows in range(1, max_rows + 1):
        for cols in range(1, max_cols + 1):
            area = cols * rows
            if pane_count <= area < best_area:
                best = (cols, rows)
                best_area = area

    if best is None:
        return GridPlan(cols=1, rows=1, slot_width=0, slot_height=0)

    cols, rows = best
    return GridPlan(
        cols=cols,
        rows=rows,
        slot_width=available_width // cols,
        slot_height=window_height // rows,
    )


def map_pane_to_slot(pane: PaneInfo, plan: GridPlan, main_pane_width: int) -> GridSlot:
    """Grid slot covering the pane's top-left corner, clamped into the plan."""
    relative_x = max(0, pane.left - main_pane_width)
    relative_y = max(0, pane.top)

    col = 0
    if plan.slot_width > 0:
        col = min(plan.cols - 1, relative_x // plan.slot_width)
    row = 0
    if plan.slot_height > 0:
        row = min(plan.rows - 1, relative_y // plan.slot_height)
    return GridSlot(row=row, col=col)
