"""agentpanes 配置

配置分为以下几类：
- 网格配置：pane 最小尺寸、分隔线、网格上限
- 主 pane 配置：默认占比与取值范围
- 队列配置：延迟挂载队列容量与 TTL
- 轮询配置：session 就绪轮询、后台存活轮询
- 用户配置：TmuxConfig（enabled / layout / 主 pane 尺寸）
"""

import os
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, field_validator

if TYPE_CHECKING:
    from .layout.types import CapacityConfig

# === 网格配置 ===
MIN_PANE_WIDTH = 52  # agent pane 默认最小宽度（列）
MIN_PANE_HEIGHT = 11  # agent pane 最小高度（行），不可配置
DIVIDER_SIZE = 1  # tmux 分隔线占用 1 格
MAX_COLS = 2  # 固定行容量布局下的最大列数
MAX_ROWS = 3  # 每列最多容纳的 pane 数
MAX_GRID_SIZE = 4  # 网格单维度上限
MIN_SPLIT_HEIGHT = 2 * MIN_PANE_HEIGHT + DIVIDER_SIZE

# === 主 pane 配置 ===
MAIN_PANE_RATIO = 0.5  # 无配置时主 pane 占比
MAIN_PANE_SIZE_MIN = 20  # main_pane_size 下限（百分比）
MAIN_PANE_SIZE_MAX = 80  # main_pane_size 上限（百分比）
DEFAULT_MAIN_PANE_SIZE = int(MAIN_PANE_RATIO * 100)
DEFAULT_MAIN_PANE_MIN_WIDTH = 120
DEFAULT_AGENT_PANE_MIN_WIDTH = 40

# === 延迟挂载队列配置 ===
MAX_DEFERRED_QUEUE_SIZE = 20  # 队列满时丢弃新请求
DEFERRED_SESSION_TTL_SECONDS = 5 * 60.0  # 超过 TTL 的请求直接丢弃
MAX_NULL_STATE_COUNT = 3  # 连续 N 次窗口快照失败后停止重试

# === 轮询配置 ===
TIMER_TICK_INTERVAL = 0.5  # Timer tick 间隔（秒）
POLL_INTERVAL_BACKGROUND = 2.0  # 延迟挂载 / 存活轮询间隔（秒）
SESSION_READY_POLL_INTERVAL = 0.5  # session 就绪轮询间隔（秒）
SESSION_READY_TIMEOUT = 10.0  # session 就绪等待上限（秒），超时不影响跟踪
SESSION_MISSING_GRACE_SECONDS = 6.0  # status 中缺失超过该时长视为已退出
SESSION_MIN_LIFETIME_SECONDS = 10.0  # idle 关闭前的最短存活时间
SESSION_STALE_TIMEOUT_SECONDS = 60 * 60.0  # 跟踪超过该时长强制关闭
STATUS_REQUEST_TIMEOUT = 5.0  # session status HTTP 请求超时（秒）

# === 外部命令配置 ===
DEFAULT_SERVER_URL = f"http://localhost:{os.environ.get('OPENCODE_PORT', '4096')}"
ATTACH_COMMAND_TEMPLATE = os.environ.get(
    "AGENTPANES_ATTACH_COMMAND",
    "opencode attach {server_url} --session {session_id}",
)
DEFAULT_SUBAGENT_TITLE = "Subagent"

# === Web 配置 ===
RECEIVER_HOST = "127.0.0.1"
RECEIVER_PORT = 8766

# === 日志配置 ===
LOG_LEVEL = os.environ.get("AGENTPANES_LOG_LEVEL", "INFO")  # 日志级别

# === 指标配置 ===
METRICS_ENABLED = True  # 是否启用指标收集

LayoutName = Literal["grid", "main-vertical", "main-horizontal"]


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class TmuxConfig(BaseModel):
    """用户可见的 tmux 分屏配置

    Attributes:
        enabled: 是否启用 pane 分配
        layout: grid | main-vertical | main-horizontal
        main_pane_size: 主 pane 占比（百分比，自动钳制到 20-80）
        main_pane_min_width: 主 pane 最小宽度
        agent_pane_min_width: agent pane 最小宽度
    """

    enabled: bool = True
    layout: LayoutName = "main-vertical"
    main_pane_size: int = DEFAULT_MAIN_PANE_SIZE
    main_pane_min_width: int = DEFAULT_MAIN_PANE_MIN_WIDTH
    agent_pane_min_width: int = DEFAULT_AGENT_PANE_MIN_WIDTH

    @field_validator("main_pane_size")
    @classmethod
    def _clamp_main_pane_size(cls, value: int) -> int:
        return clamp(value, MAIN_PANE_SIZE_MIN, MAIN_PANE_SIZE_MAX)

    @field_validator("main_pane_min_width", "agent_pane_min_width")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(0, value)

    @classmethod
    def from_env(cls) -> "TmuxConfig":
        """从环境变量读取配置（未设置的字段使用默认值）"""
        values: dict[str, object] = {
            "enabled": _env_bool("AGENTPANES_ENABLED", True),
        }
        env_fields = {
            "layout": "AGENTPANES_LAYOUT",
            "main_pane_size": "AGENTPANES_MAIN_PANE_SIZE",
            "main_pane_min_width": "AGENTPANES_MAIN_PANE_MIN_WIDTH",
            "agent_pane_min_width": "AGENTPANES_AGENT_PANE_MIN_WIDTH",
        }
        for field_name, env_name in env_fields.items():
            raw = os.environ.get(env_name)
            if raw:
                values[field_name] = raw
        return cls.model_validate(values)

    def capacity(self) -> "CapacityConfig":
        """转换为规划算法使用的 CapacityConfig"""
        from .layout.types import CapacityConfig, LayoutMode

        return CapacityConfig(
            layout=LayoutMode(self.layout),
            main_pane_size=self.main_pane_size,
            main_pane_min_width=self.main_pane_min_width,
            agent_pane_min_width=self.agent_pane_min_width,
        )
