"""Layout 模块

纯函数实现的 pane 容量规划与分配决策：
- types: 数据类型定义（WindowState, PaneAction, SpawnDecision 等）
- grid: 容量与网格规划
- split: 分屏可行性谓词
- eviction: 驱逐策略（最早创建的 pane）
- target: 分屏目标查找
- decision: 决策引擎
"""

from .types import (
    CapacityConfig,
    CloseAction,
    DeferredSession,
    LayoutMode,
    PaneAction,
    PaneInfo,
    ReplaceAction,
    SessionMapping,
    SpawnAction,
    SpawnDecision,
    SplitDirection,
    TrackedSession,
    WindowState,
    describe_action,
)
from .grid import (
    GridCapacity,
    GridPlan,
    GridSlot,
    calculate_capacity,
    compute_agent_area_width,
    compute_grid_plan,
    compute_main_pane_width,
    get_main_pane_size_percent,
    map_pane_to_slot,
)
from .split import (
    can_split_pane,
    can_split_pane_any_direction,
    find_minimal_evictions,
    get_best_split_direction,
    get_column_count,
    get_column_width,
    is_splittable_at_count,
    min_split_width,
)
from .eviction import find_oldest_agent_pane, find_oldest_mapping
from .target import SpawnTarget, find_spawn_target, followup_split_direction, initial_split_direction
from .decision import decide_close_action, decide_spawn_actions

__all__ = [
    # Types
    "CapacityConfig",
    "CloseAction",
    "DeferredSession",
    "LayoutMode",
    "PaneAction",
    "PaneInfo",
    "ReplaceAction",
    "SessionMapping",
    "SpawnAction",
    "SpawnDecision",
    "SplitDirection",
    "TrackedSession",
    "WindowState",
    "describe_action",
    # Grid
    "GridCapacity",
    "GridPlan",
    "GridSlot",
    "calculate_capacity",
    "compute_agent_area_width",
    "compute_grid_plan",
    "compute_main_pane_width",
    "get_main_pane_size_percent",
    "map_pane_to_slot",
    # Split
    "can_split_pane",
    "can_split_pane_any_direction",
    "find_minimal_evictions",
    "get_best_split_direction",
    "get_column_count",
    "get_column_width",
    "is_splittable_at_count",
    "min_split_width",
    # Eviction
    "find_oldest_agent_pane",
    "find_oldest_mapping",
    # Target
    "SpawnTarget",
    "find_spawn_target",
    "followup_split_direction",
    "initial_split_direction",
    # Decision
    "decide_close_action",
    "decide_spawn_actions",
]
