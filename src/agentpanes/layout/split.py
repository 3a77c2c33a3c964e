"""Split availability predicates.

A split consumes one divider cell, so a pane can be split horizontally only
when it holds two minimum-width panes plus the divider. Vertical splits use
the fixed MIN_PANE_HEIGHT regardless of the configured agent width.
"""

import math

from ..config import (
    DIVIDER_SIZE,
    MAX_COLS,
    MAX_ROWS,
    MIN_PANE_WIDTH,
    MIN_SPLIT_HEIGHT,
)
from .types import PaneInfo, SplitDirection


def min_split_width(min_pane_width: int | None = None) -> int:
    width = max(1, MIN_PANE_WIDTH if min_pane_width is None else min_pane_width)
    return 2 * width + DIVIDER_SIZE


def get_column_count(pane_count: int) -> int:
    """Columns needed when each column stacks at most MAX_ROWS panes."""
    if pane_count <= 0:
        return 1
    return min(MAX_COLS, max(1, math.ceil(pane_count / MAX_ROWS)))


def get_column_width(agent_area_width: int, pane_count: int) -> int:
    cols = get_column_count(pane_count)
    dividers = (cols - 1) * DIVIDER_SIZE
    return (agent_area_width - dividers) // cols


def is_splittable_at_count(
    agent_area_width: int,
    pane_count: int,
    min_pane_width: int | None = None,
) -> bool:
    """Whether a column at this pane count is still wide enough to split."""
    return get_column_width(agent_area_width, pane_count) >= min_split_width(min_pane_width)


def find_minimal_evictions(
    agent_area_width: int,
    current_count: int,
    min_pane_width: int | None = None,
) -> int | None:
    """Smallest k >= 1 such that current_count - k panes are splittable.

    Returns:
        k, or None when even closing every pane does not help.
    """
    for k in range(1, current_count + 1):
        if is_splittable_at_count(agent_area_width, current_count - k, min_pane_width):
            return k
    return None


def can_split_pane(
    pane: PaneInfo,
    direction: SplitDirection,
    min_pane_width: int | None = None,
) -> bool:
    if direction is SplitDirection.HORIZONTAL:
        return pane.width >= min_split_width(min_pane_width)
    return pane.height >= MIN_SPLIT_HEIGHT


def can_split_pane_any_direction(pane: PaneInfo, min_pane_width: int | None = None) -> bool:
    return pane.width >= min_split_width(min_pane_width) or pane.height >= MIN_SPLIT_HEIGHT


def get_best_split_direction(
    pane: PaneInfo,
    min_pane_width: int | None = None,
) -> SplitDirection | None:
    """Preferred split for a pane, or None when it cannot be split at all.

    When both directions fit, wide panes split horizontally and tall panes
    vertically.
    """
    can_h = can_split_pane(pane, SplitDirection.HORIZONTAL, min_pane_width)
    can_v = can_split_pane(pane, SplitDirection.VERTICAL, min_pane_width)

    if can_h and can_v:
        return SplitDirection.HORIZONTAL if pane.width >= pane.height else SplitDirection.VERTICAL
    if can_h:
        return SplitDirection.HORIZONTAL
    if can_v:
        return SplitDirection.VERTICAL
    return None
