"""SessionPoller - 已挂载 session 的后台存活轮询

周期性读取 session status：
- 有状态条目的 session 刷新 last_seen_at
- 缺失超过宽限期、idle 且已过最短存活时间、或跟踪时间过长的 session
  通过回调关闭其 pane
"""

from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timedelta

from .. import config
from ..layout.types import TrackedSession
from ..telemetry import format_session_log, get_logger
from ..timer import Timer
from .status import SessionStatusClient

logger = get_logger(__name__)

CloseSessionCallback = Callable[[str], Awaitable[None]]

IDLE_STATUS = "idle"


class SessionPoller:
    """后台存活轮询

    Attributes:
        sessions: 生命周期管理器持有的跟踪缓存（只读）
    """

    def __init__(
        self,
        status_client: SessionStatusClient,
        sessions: Mapping[str, TrackedSession],
        on_session_gone: CloseSessionCallback,
        interval: float = config.POLL_INTERVAL_BACKGROUND,
        tick_interval: float | None = None,
    ):
        self._status_client = status_client
        self._sessions = sessions
        self._on_session_gone = on_session_gone
        self._interval = interval
        self._timer = Timer(name="session_poll", tick_interval=tick_interval)
        self._polling = False
        self._missing_grace = timedelta(seconds=config.SESSION_MISSING_GRACE_SECONDS)
        self._min_lifetime = timedelta(seconds=config.SESSION_MIN_LIFETIME_SECONDS)
        self._stale_timeout = timedelta(seconds=config.SESSION_STALE_TIMEOUT_SECONDS)

    def start_polling(self) -> None:
        """启动轮询（幂等）"""
        if self._timer.is_running:
            return
        self._timer.register_interval("poll_sessions", self._interval, self.poll_sessions)
        self._timer.start()
        logger.info(f"[SessionPoller] polling started ({self._interval}s)")

    def stop_polling(self) -> None:
        """停止轮询（幂等）"""
        if not self._timer.is_running:
            return
        self._timer.unregister_interval("poll_sessions")
        self._timer.stop()
        logger.info("[SessionPoller] polling stopped")

    @property
    def is_polling(self) -> bool:
        return self._timer.is_running

    async def poll_sessions(self) -> None:
        """执行一次轮询，重叠调用直接跳过"""
        if self._polling:
            return
        if not self._sessions:
            self.stop_polling()
            return

        self._polling = True
        try:
            statuses = await self._status_client.get_statuses()
            if statuses is None:
                # status 服务不可达时无法区分退出与存活，跳过本轮
                logger.debug("[SessionPoller] status unavailable, skipping poll")
                return

            now = datetime.now()
            gone: list[str] = []

            for session_id, tracked in list(self._sessions.items()):
                status = statuses.get(session_id)
                if status is not None:
                    tracked.last_seen_at = now

                if self._should_close(tracked, status, now):
                    gone.append(session_id)

            for session_id in gone:
                logger.info(format_session_log("SessionPoller", session_id, "session gone, closing pane"))
                await self._on_session_gone(session_id)
        finally:
            self._polling = False

    def _should_close(self, tracked: TrackedSession, status: dict | None, now: datetime) -> bool:
        if now - tracked.created_at > self._stale_timeout:
            return True
        if status is None:
            return now - tracked.last_seen_at > self._missing_grace
        return (
            status.get("type") == IDLE_STATUS
            and now - tracked.created_at > self._min_lifetime
        )
