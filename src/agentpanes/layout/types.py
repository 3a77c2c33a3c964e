"""Layout 模块数据类型定义

包含：
- SplitDirection / LayoutMode: 分屏方向与布局策略
- PaneInfo / WindowState: 窗口快照
- CapacityConfig: 规划算法使用的容量配置
- SessionMapping / TrackedSession / DeferredSession: session ↔ pane 关系
- SpawnAction / CloseAction / ReplaceAction: pane 操作（封闭联合类型）
- SpawnDecision: 决策结果
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import ClassVar

from ..config import (
    DEFAULT_AGENT_PANE_MIN_WIDTH,
    DEFAULT_MAIN_PANE_MIN_WIDTH,
    DEFAULT_MAIN_PANE_SIZE,
    MAIN_PANE_SIZE_MAX,
    MAIN_PANE_SIZE_MIN,
    clamp,
)


class SplitDirection(Enum):
    """分屏方向，取值即 tmux split-window 参数

    - HORIZONTAL: 左右分（新 pane 在右侧）
    - VERTICAL: 上下分（新 pane 在下方）
    """
    HORIZONTAL = "-h"
    VERTICAL = "-v"


class LayoutMode(Enum):
    """agent pane 排布策略

    - GRID: 自由二维网格
    - MAIN_VERTICAL: 主 pane 在左，agent pane 在右侧纵向堆叠
    - MAIN_HORIZONTAL: 主 pane 在上，agent pane 在下方横向排列
    """
    GRID = "grid"
    MAIN_VERTICAL = "main-vertical"
    MAIN_HORIZONTAL = "main-horizontal"

    @property
    def is_strict(self) -> bool:
        """是否为固定轴布局（不做驱逐）"""
        return self in {LayoutMode.MAIN_VERTICAL, LayoutMode.MAIN_HORIZONTAL}


@dataclass(frozen=True)
class PaneInfo:
    """tmux pane 几何信息（窗口内相对坐标）"""
    pane_id: str
    width: int
    height: int
    left: int
    top: int
    title: str = ""
    is_active: bool = False

    def with_width(self, width: int) -> "PaneInfo":
        return replace(self, width=width)


@dataclass
class WindowState:
    """一次窗口快照

    Attributes:
        window_width: 窗口宽度（列）
        window_height: 窗口高度（行）
        main_pane: 主 pane（最左、最宽、最上）
        agent_panes: 除主 pane 外的所有 pane
    """
    window_width: int
    window_height: int
    main_pane: PaneInfo | None
    agent_panes: list[PaneInfo] = field(default_factory=list)

    def find_agent_pane(self, pane_id: str) -> PaneInfo | None:
        for pane in self.agent_panes:
            if pane.pane_id == pane_id:
                return pane
        return None


@dataclass(frozen=True)
class CapacityConfig:
    """容量规划配置"""
    layout: LayoutMode = LayoutMode.MAIN_VERTICAL
    main_pane_size: int = DEFAULT_MAIN_PANE_SIZE
    main_pane_min_width: int = DEFAULT_MAIN_PANE_MIN_WIDTH
    agent_pane_min_width: int = DEFAULT_AGENT_PANE_MIN_WIDTH

    def __post_init__(self):
        object.__setattr__(
            self,
            "main_pane_size",
            clamp(self.main_pane_size, MAIN_PANE_SIZE_MIN, MAIN_PANE_SIZE_MAX),
        )

    @property
    def is_strict(self) -> bool:
        return self.layout.is_strict


@dataclass(frozen=True)
class SessionMapping:
    """决策引擎读取的 session → pane 只读视图"""
    session_id: str
    pane_id: str
    created_at: datetime


@dataclass
class TrackedSession:
    """已挂载 session 的缓存条目

    仅在 tmux 确认 pane 存在后创建。
    """
    session_id: str
    pane_id: str
    description: str
    created_at: datetime
    last_seen_at: datetime

    def to_mapping(self) -> SessionMapping:
        return SessionMapping(
            session_id=self.session_id,
            pane_id=self.pane_id,
            created_at=self.created_at,
        )

    def to_dict(self) -> dict:
        """转换为可序列化的字典"""
        return {
            "session_id": self.session_id,
            "pane_id": self.pane_id,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "last_seen_at": self.last_seen_at.isoformat(),
        }


@dataclass
class DeferredSession:
    """暂无容量、等待重试挂载的 session"""
    session_id: str
    title: str
    queued_at: datetime


@dataclass(frozen=True)
class SpawnAction:
    """分屏创建新 pane"""
    kind: ClassVar[str] = "spawn"
    session_id: str
    description: str
    target_pane_id: str
    split_direction: SplitDirection


@dataclass(frozen=True)
class CloseAction:
    """关闭 pane"""
    kind: ClassVar[str] = "close"
    pane_id: str
    session_id: str


@dataclass(frozen=True)
class ReplaceAction:
    """在原 pane 中替换为新 session（几何不变）"""
    kind: ClassVar[str] = "replace"
    pane_id: str
    new_session_id: str
    description: str
    old_session_id: str


PaneAction = SpawnAction | CloseAction | ReplaceAction


@dataclass
class SpawnDecision:
    """决策结果

    actions 按执行顺序排列（Close 必须先于依赖其空间的 Spawn）。
    reason 仅用于诊断。
    """
    can_spawn: bool
    actions: list[PaneAction] = field(default_factory=list)
    reason: str | None = None

    @classmethod
    def reject(cls, reason: str) -> "SpawnDecision":
        return cls(can_spawn=False, actions=[], reason=reason)


def describe_action(action: PaneAction) -> dict:
    """日志用的操作摘要"""
    match action:
        case SpawnAction():
            return {
                "type": action.kind,
                "session_id": action.session_id,
                "target": action.target_pane_id,
                "direction": action.split_direction.value,
            }
        case CloseAction():
            return {"type": action.kind, "pane_id": action.pane_id}
        case ReplaceAction():
            return {
                "type": action.kind,
                "pane_id": action.pane_id,
                "new_session_id": action.new_session_id,
            }
