"""PaneSessionManager - session ↔ pane 生命周期管理

以 tmux 的真实状态为准：
1. QUERY: 查询窗口快照
2. DECIDE: 决策引擎（纯函数）给出操作序列
3. EXECUTE: 执行 tmux 命令
4. UPDATE: 仅在 tmux 确认成功后更新缓存

所有分配工作（含延迟重试、删除、关闭）都串行经过 SpawnQueue，
跟踪缓存与延迟队列只在队列任务内修改。

状态流转: pending → attaching → tracked → (closing) → gone
         pending → deferred → attaching → tracked
"""

import asyncio
from datetime import datetime

from .. import config
from ..config import TmuxConfig
from ..layout.decision import decide_close_action, decide_spawn_actions
from ..layout.types import (
    CloseAction,
    ReplaceAction,
    SessionMapping,
    SpawnDecision,
    TrackedSession,
    WindowState,
    describe_action,
)
from ..telemetry import format_session_log, get_logger, metrics
from ..timer import Timer
from ..tmux.client import TmuxClient, get_current_pane_id, is_inside_tmux
from ..tmux.executor import ActionExecutor, ExecuteContext
from ..tmux.snapshot import query_window_state
from .poller import SessionPoller
from .queue import DeferredQueue, SpawnQueue
from .status import SessionStatusClient

logger = get_logger(__name__)

EVENT_SESSION_CREATED = "session.created"
EVENT_SESSION_DELETED = "session.deleted"


def _log(session_id: str, msg: str) -> str:
    return format_session_log("PaneManager", session_id, msg)


class PaneSessionManager:
    """Pane 生命周期管理器

    订阅 session 创建/删除事件，把它们转换为串行执行的 pane 分配操作。

    Attributes:
        tracked_sessions: 已挂载 session 缓存的只读副本
        deferred_session_ids: 等待容量的 session
    """

    def __init__(
        self,
        tmux_config: TmuxConfig,
        server_url: str = config.DEFAULT_SERVER_URL,
        *,
        client: TmuxClient | None = None,
        executor: ActionExecutor | None = None,
        status_client: SessionStatusClient | None = None,
        deferred_queue: DeferredQueue | None = None,
        source_pane_id: str | None = None,
        inside_tmux: bool | None = None,
        deferred_interval: float = config.POLL_INTERVAL_BACKGROUND,
        poll_interval: float = config.POLL_INTERVAL_BACKGROUND,
        tick_interval: float | None = None,
        ready_timeout: float = config.SESSION_READY_TIMEOUT,
        ready_poll_interval: float = config.SESSION_READY_POLL_INTERVAL,
    ):
        self._config = tmux_config
        self._server_url = server_url
        self._client = client or TmuxClient()
        self._executor = executor or ActionExecutor(self._client, tmux_config, server_url)
        self._status_client = status_client or SessionStatusClient(server_url)
        self._source_pane_id = source_pane_id or get_current_pane_id()
        self._inside_tmux = is_inside_tmux() if inside_tmux is None else inside_tmux

        self._sessions: dict[str, TrackedSession] = {}
        self._pending: set[str] = set()
        self._spawn_queue = SpawnQueue()
        self._deferred = deferred_queue if deferred_queue is not None else DeferredQueue()

        # 延迟挂载循环
        self._deferred_interval = deferred_interval
        self._deferred_timer = Timer(name="deferred_attach", tick_interval=tick_interval)
        self._deferred_tick_scheduled = False
        self._null_state_count = 0
        self._shutting_down = False

        self._ready_timeout = ready_timeout
        self._ready_poll_interval = ready_poll_interval

        self._poller = SessionPoller(
            self._status_client,
            self._sessions,
            self.close_session_by_id,
            interval=poll_interval,
            tick_interval=tick_interval,
        )

        logger.info(
            f"[PaneManager] initialized: enabled={self._config.enabled} "
            f"inside_tmux={self._inside_tmux} layout={self._config.layout} "
            f"source_pane={self._source_pane_id} server={self._server_url}"
        )

    # === 状态查询 ===

    def is_enabled(self) -> bool:
        return self._config.enabled and self._inside_tmux

    @property
    def tracked_sessions(self) -> dict[str, TrackedSession]:
        return dict(self._sessions)

    @property
    def deferred_session_ids(self) -> list[str]:
        return self._deferred.session_ids

    @property
    def pending_session_ids(self) -> set[str]:
        return set(self._pending)

    @property
    def is_deferred_loop_running(self) -> bool:
        return self._deferred_timer.is_running

    @property
    def poller(self) -> SessionPoller:
        return self._poller

    def get_session_mappings(self) -> list[SessionMapping]:
        return [tracked.to_mapping() for tracked in self._sessions.values()]

    def snapshot(self) -> dict:
        """调试/状态接口使用的快照"""
        return {
            "enabled": self.is_enabled(),
            "source_pane_id": self._source_pane_id,
            "tracked": [tracked.to_dict() for tracked in self._sessions.values()],
            "pending": sorted(self._pending),
            "deferred": self._deferred.session_ids,
        }

    # === 事件入口 ===

    async def handle_event(self, event: dict) -> None:
        """按事件类型分发"""
        event_type = event.get("type")
        if event_type == EVENT_SESSION_CREATED:
            await self.on_session_created(event)
        elif event_type == EVENT_SESSION_DELETED:
            properties = event.get("properties") or {}
            info = properties.get("info") or {}
            session_id = properties.get("sessionID") or info.get("id")
            if session_id:
                await self.on_session_deleted(session_id)

    async def on_session_created(self, event: dict) -> None:
        """session 创建：为子 session 分配 pane

        Args:
            event: {"type": "session.created", "properties": {"info": {id, parentID, title}}}
        """
        if not self.is_enabled() or self._shutting_down:
            return
        if event.get("type") != EVENT_SESSION_CREATED:
            return

        info = (event.get("properties") or {}).get("info") or {}
        session_id = info.get("id")
        if not session_id or not info.get("parentID"):
            return
        title = info.get("title") or config.DEFAULT_SUBAGENT_TITLE

        if (
            session_id in self._sessions
            or session_id in self._pending
            or session_id in self._deferred
        ):
            logger.debug(_log(session_id, "already tracked or pending"))
            return

        if not self._source_pane_id:
            logger.warning("[PaneManager] no source pane id, cannot allocate panes")
            return

        self._pending.add(session_id)
        await self._spawn_queue.submit(lambda: self._spawn_session(session_id, title))

    async def on_session_deleted(self, session_id: str) -> None:
        """session 删除：移出延迟队列并关闭其 pane"""
        if not self.is_enabled() or not self._source_pane_id:
            return
        await self._spawn_queue.submit(lambda: self._handle_deleted(session_id))

    async def close_session_by_id(self, session_id: str) -> None:
        """SessionPoller 回调：关闭已退出 session 的 pane"""
        if session_id not in self._sessions:
            return
        await self._spawn_queue.submit(lambda: self._close_tracked_session(session_id))

    # === 队列任务 ===

    async def _spawn_session(self, session_id: str, title: str) -> None:
        try:
            state = await query_window_state(self._client, self._source_pane_id)
            if state is None:
                logger.warning(_log(session_id, "failed to query window state, deferring"))
                self._enqueue_deferred(session_id, title)
                return

            decision = self._decide(state, session_id, title)
            if not decision.can_spawn:
                logger.info(_log(session_id, f"cannot spawn: {decision.reason}"))
                if config.METRICS_ENABLED:
                    metrics.inc("spawn.deferred")
                self._enqueue_deferred(session_id, title)
                return

            await self._execute_and_track(session_id, title, state, decision)
        finally:
            self._pending.discard(session_id)

    async def _handle_deleted(self, session_id: str) -> None:
        self._remove_deferred(session_id)
        await self._close_tracked_session(session_id)

    async def _close_tracked_session(self, session_id: str) -> None:
        tracked = self._sessions.get(session_id)
        if tracked is None:
            return

        logger.info(_log(session_id, f"closing pane {tracked.pane_id}"))
        state = await query_window_state(self._client, self._source_pane_id)
        if state is not None:
            action = decide_close_action(state, session_id, self.get_session_mappings())
            if action is not None:
                result = await self._executor.execute_action(
                    action, ExecuteContext(window_state=state, source_pane_id=self._source_pane_id)
                )
                if not result.success:
                    logger.warning(_log(session_id, f"close failed: {result.error}"))

        # 无论 close 是否成功都移除，避免条目永久卡住
        self._sessions.pop(session_id, None)
        if not self._sessions:
            self._poller.stop_polling()

    def _decide(self, state: WindowState, session_id: str, title: str) -> SpawnDecision:
        logger.debug(
            _log(
                session_id,
                f"window {state.window_width}x{state.window_height} "
                f"main={state.main_pane.pane_id if state.main_pane else None} "
                f"agents={[p.pane_id for p in state.agent_panes]}",
            )
        )
        decision = decide_spawn_actions(
            state,
            session_id,
            title,
            self._config.capacity(),
            self.get_session_mappings(),
        )
        logger.debug(
            _log(
                session_id,
                f"decision can_spawn={decision.can_spawn} reason={decision.reason} "
                f"actions={[describe_action(a) for a in decision.actions]}",
            )
        )
        return decision

    async def _execute_and_track(
        self,
        session_id: str,
        title: str,
        state: WindowState,
        decision: SpawnDecision,
    ) -> bool:
        """执行决策并在成功后跟踪 session

        Returns:
            是否成功挂载
        """
        ctx = ExecuteContext(window_state=state, source_pane_id=self._source_pane_id)
        result = await self._executor.execute_actions(decision.actions, ctx)

        close_succeeded = False
        for action, action_result in result.results:
            if not action_result.success:
                continue
            match action:
                case CloseAction():
                    close_succeeded = True
                    self._sessions.pop(action.session_id, None)
                    logger.info(_log(action.session_id, "evicted, removed from cache"))
                case ReplaceAction():
                    self._sessions.pop(action.old_session_id, None)
                    logger.info(
                        _log(action.old_session_id, f"replaced by {action.new_session_id}")
                    )

        if result.success and result.spawned_pane_id:
            ready = await self.wait_for_session_ready(session_id)
            if not ready:
                logger.info(_log(session_id, "not ready after timeout, tracking anyway"))

            now = datetime.now()
            self._sessions[session_id] = TrackedSession(
                session_id=session_id,
                pane_id=result.spawned_pane_id,
                description=title,
                created_at=now,
                last_seen_at=now,
            )
            if config.METRICS_ENABLED:
                metrics.inc("spawn.ok")
            logger.info(_log(session_id, f"pane {result.spawned_pane_id} tracked (ready={ready})"))
            if not self._shutting_down:
                self._poller.start_polling()
            return True

        if config.METRICS_ENABLED:
            metrics.inc("spawn.fail")
        logger.warning(
            _log(
                session_id,
                "spawn failed: "
                f"{[(a.kind, r.success, r.error) for a, r in result.results]}",
            )
        )

        if result.spawned_pane_id:
            await self._executor.close_pane(result.spawned_pane_id, session_id, ctx)

        if close_succeeded:
            # 已经腾出空间但没挂上，不能丢掉这个 session
            logger.info(_log(session_id, "re-queueing after close+spawn failure"))
            self._enqueue_deferred(session_id, title)

        if not self._sessions:
            self._poller.stop_polling()
        return False

    async def wait_for_session_ready(self, session_id: str) -> bool:
        """轮询 session status 直到出现该 session 或超时

        就绪只是参考信息，超时不影响后续跟踪。
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self._ready_timeout

        while loop.time() < deadline:
            if await self._status_client.has_session(session_id):
                logger.debug(
                    _log(session_id, f"ready after {loop.time() - started:.2f}s")
                )
                return True
            await asyncio.sleep(self._ready_poll_interval)

        logger.debug(_log(session_id, f"ready timeout ({self._ready_timeout}s)"))
        return False

    # === 延迟挂载 ===

    def _enqueue_deferred(self, session_id: str, title: str) -> None:
        if self._deferred.enqueue(session_id, title):
            self._start_deferred_attach_loop()

    def _remove_deferred(self, session_id: str) -> None:
        if self._deferred.remove(session_id) and not self._deferred:
            self._stop_deferred_attach_loop()

    def _start_deferred_attach_loop(self) -> None:
        if self._deferred_timer.is_running or self._shutting_down:
            return
        self._null_state_count = 0
        self._deferred_timer.register_interval(
            "deferred_attach", self._deferred_interval, self._on_deferred_tick
        )
        self._deferred_timer.start()
        logger.info(f"[PaneManager] deferred attach polling started ({self._deferred_interval}s)")

    def _stop_deferred_attach_loop(self) -> None:
        if not self._deferred_timer.is_running:
            return
        self._deferred_timer.unregister_interval("deferred_attach")
        self._deferred_timer.stop()
        self._deferred_tick_scheduled = False
        self._null_state_count = 0
        logger.info("[PaneManager] deferred attach polling stopped")

    async def _on_deferred_tick(self) -> None:
        if self._deferred_tick_scheduled or self._shutting_down:
            return
        self._deferred_tick_scheduled = True
        try:
            await self._spawn_queue.submit(self._try_attach_deferred_session)
        finally:
            self._deferred_tick_scheduled = False

    async def _try_attach_deferred_session(self) -> None:
        if not self._source_pane_id or self._shutting_down:
            return

        now = datetime.now()
        while True:
            head = self._deferred.peek()
            if head is None:
                self._stop_deferred_attach_loop()
                return
            if not self._deferred.is_expired(head, now):
                break
            self._deferred.pop()
            logger.info(
                _log(head.session_id, f"deferred session expired (queued {head.queued_at:%H:%M:%S})")
            )
            if config.METRICS_ENABLED:
                metrics.inc("deferred.expired")

        state = await query_window_state(self._client, self._source_pane_id)
        if state is None:
            self._null_state_count += 1
            logger.warning(
                f"[PaneManager] deferred attach: window state is null "
                f"({self._null_state_count}/{config.MAX_NULL_STATE_COUNT})"
            )
            if self._null_state_count >= config.MAX_NULL_STATE_COUNT:
                logger.warning("[PaneManager] stopping deferred attach after consecutive null states")
                self._stop_deferred_attach_loop()
            return
        self._null_state_count = 0

        decision = self._decide(state, head.session_id, head.title)
        if not decision.can_spawn:
            logger.debug(_log(head.session_id, f"still waiting for capacity: {decision.reason}"))
            return

        if await self._execute_and_track(head.session_id, head.title, state, decision):
            self._remove_deferred(head.session_id)
            if config.METRICS_ENABLED:
                metrics.inc("deferred.attached")

    # === 关闭 ===

    async def cleanup(self) -> None:
        """进程退出：排空队列，停止定时器，清空延迟队列，尽力关闭所有已跟踪 pane

        排空期间完成的任务仍会更新缓存，但不再启动定时器。
        """
        self._shutting_down = True
        await self._spawn_queue.drain()

        self._stop_deferred_attach_loop()
        self._deferred.clear()
        self._poller.stop_polling()

        if self._sessions:
            logger.info(f"[PaneManager] closing {len(self._sessions)} panes")
            state = (
                await query_window_state(self._client, self._source_pane_id)
                if self._source_pane_id
                else None
            )
            if state is not None:
                ctx = ExecuteContext(window_state=state, source_pane_id=self._source_pane_id)
                for tracked in list(self._sessions.values()):
                    try:
                        result = await self._executor.close_pane(
                            tracked.pane_id, tracked.session_id, ctx
                        )
                        if not result.success:
                            logger.warning(
                                _log(tracked.session_id, f"cleanup close failed: {result.error}")
                            )
                    except Exception as e:
                        logger.error(_log(tracked.session_id, f"cleanup error: {e}"))
            self._sessions.clear()

        await self._spawn_queue.close()
        await self._status_client.close()
        logger.info("[PaneManager] cleanup complete")
