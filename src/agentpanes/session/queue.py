"""Session 队列

- SpawnQueue: 单 worker 的串行任务队列，所有 pane 分配工作都经过它，
  保证同一时刻最多只有一个"快照 → 决策 → 执行 → 更新缓存"在进行
- DeferredQueue: 暂无容量的 session 的 FIFO 重试队列，有容量上限与 TTL

特性：
- DeferredQueue 满时丢弃新到的请求（已排队请求优先）
- 丢弃/过期时记录 deferred.dropped / deferred.expired 指标
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from ..config import (
    DEFERRED_SESSION_TTL_SECONDS,
    MAX_DEFERRED_QUEUE_SIZE,
    METRICS_ENABLED,
)
from ..layout.types import DeferredSession
from ..telemetry import format_session_log, get_logger, metrics

logger = get_logger(__name__)

SpawnJob = Callable[[], Awaitable[None]]


class SpawnQueue:
    """串行任务队列

    submit() 把任务追加到队尾并等待其完成；worker 逐个执行，
    任务抛出的异常被记录并隔离，不影响后续任务。
    """

    def __init__(self, name: str = "spawn"):
        self._name = name
        self._queue: asyncio.Queue[tuple[SpawnJob, asyncio.Future]] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._busy = False
        self._closed = False

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def submit(self, job: SpawnJob) -> None:
        """追加任务并等待其执行完毕

        Args:
            job: 无参协程函数
        """
        if self._closed:
            logger.debug(f"[SpawnQueue:{self._name}] closed, job ignored")
            return

        self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((job, future))
        await future

    async def _run(self) -> None:
        while True:
            job, future = await self._queue.get()
            self._busy = True
            try:
                await job()
            except Exception as e:
                logger.error(f"[SpawnQueue:{self._name}] job failed: {e}")
                if METRICS_ENABLED:
                    metrics.inc("spawn_queue.errors")
            finally:
                self._busy = False
                self._queue.task_done()
                # 提交方可能已被取消
                if not future.done():
                    future.set_result(None)

    async def drain(self) -> None:
        """等待已提交的任务全部完成"""
        if self._worker is None or self._worker.done():
            return
        await self._queue.join()

    async def close(self) -> None:
        """等待排空后停止 worker"""
        await self.drain()
        self._closed = True
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

    # === 状态 ===

    @property
    def is_busy(self) -> bool:
        """是否有任务正在执行"""
        return self._busy

    @property
    def depth(self) -> int:
        """等待中的任务数"""
        return self._queue.qsize()


class DeferredQueue:
    """延迟挂载队列

    以 session_id 为键的 FIFO。队首请求失败时留在队首，等待下一次重试。

    Attributes:
        max_size: 最大容量
        ttl: 请求存活时长
    """

    def __init__(
        self,
        max_size: int = MAX_DEFERRED_QUEUE_SIZE,
        ttl_seconds: float = DEFERRED_SESSION_TTL_SECONDS,
    ):
        self.max_size = max_size
        self.ttl = timedelta(seconds=ttl_seconds)
        self._entries: dict[str, DeferredSession] = {}

    def enqueue(self, session_id: str, title: str, now: datetime | None = None) -> bool:
        """入队

        Returns:
            是否入队（已存在或队列已满时返回 False）
        """
        if session_id in self._entries:
            return False

        if len(self._entries) >= self.max_size:
            logger.warning(
                format_session_log(
                    "DeferredQueue", session_id,
                    f"queue full ({len(self._entries)}/{self.max_size}), dropping session",
                )
            )
            if METRICS_ENABLED:
                metrics.inc("deferred.dropped")
            return False

        self._entries[session_id] = DeferredSession(
            session_id=session_id,
            title=title,
            queued_at=now or datetime.now(),
        )
        self._update_depth()
        logger.info(
            format_session_log("DeferredQueue", session_id, f"queued (depth={len(self._entries)})")
        )
        return True

    def remove(self, session_id: str) -> bool:
        """移除指定 session（不存在时无操作）"""
        if self._entries.pop(session_id, None) is None:
            return False
        self._update_depth()
        logger.info(
            format_session_log("DeferredQueue", session_id, f"removed (depth={len(self._entries)})")
        )
        return True

    def peek(self) -> DeferredSession | None:
        """查看队首（不移除）"""
        return next(iter(self._entries.values()), None)

    def pop(self) -> DeferredSession | None:
        """移除并返回队首"""
        head = self.peek()
        if head is not None:
            del self._entries[head.session_id]
            self._update_depth()
        return head

    def is_expired(self, entry: DeferredSession, now: datetime | None = None) -> bool:
        return (now or datetime.now()) - entry.queued_at > self.ttl

    def get(self, session_id: str) -> DeferredSession | None:
        return self._entries.get(session_id)

    def clear(self) -> int:
        """清空队列

        Returns:
            清除的项数
        """
        count = len(self._entries)
        self._entries.clear()
        self._update_depth()
        return count

    def _update_depth(self) -> None:
        if METRICS_ENABLED:
            metrics.gauge("deferred.depth", len(self._entries))

    # === 状态 ===

    @property
    def session_ids(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
