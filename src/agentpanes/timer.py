"""Timer - 周期任务定时器

延迟挂载重试与 session 存活轮询都由 Timer 驱动。
支持同步/异步回调，异常隔离，可反复 start/stop。

使用示例:
    timer = Timer(tick_interval=0.5)
    timer.register_interval("deferred_attach", 2.0, tick)
    timer.start()
    ...
    timer.stop()
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Coroutine

from . import config
from .telemetry import get_logger, metrics

logger = get_logger(__name__)

TimerCallback = Callable[[], Any | Coroutine[Any, Any, Any]]


@dataclass
class IntervalTask:
    """周期任务"""
    name: str
    interval: float  # 秒
    callback: TimerCallback
    last_run: float = 0.0  # 上次运行时间（event loop time）


class Timer:
    """周期定时器

    设计原则:
    1. 一个 Timer 实例驱动一组周期任务
    2. 支持同步/异步回调
    3. 异常隔离：单个回调失败不影响其他任务
    4. stop() 之后可以再次 start()
    """

    def __init__(self, name: str = "timer", tick_interval: float | None = None):
        """初始化 Timer

        Args:
            name: 日志中使用的名称
            tick_interval: tick 间隔（秒），None 使用配置默认值
        """
        self._name = name
        self._tick_interval = tick_interval or config.TIMER_TICK_INTERVAL
        self._interval_tasks: dict[str, IntervalTask] = {}
        self._running = False
        self._task: asyncio.Task | None = None

    def register_interval(
        self,
        name: str,
        interval: float,
        callback: TimerCallback,
        run_immediately: bool = False,
    ) -> None:
        """注册周期任务

        Args:
            name: 任务名（用于日志和取消）
            interval: 执行间隔（秒）
            callback: 回调函数（同步或异步）
            run_immediately: True 时第一次 tick 立即执行，否则等待一个 interval
        """
        last_run = 0.0
        if not run_immediately:
            try:
                last_run = asyncio.get_running_loop().time()
            except RuntimeError:
                last_run = 0.0
        self._interval_tasks[name] = IntervalTask(
            name=name,
            interval=interval,
            callback=callback,
            last_run=last_run,
        )
        logger.debug(f"[Timer:{self._name}] Registered interval task: {name} ({interval}s)")

    def unregister_interval(self, name: str) -> bool:
        """取消注册周期任务

        Returns:
            是否成功取消
        """
        if name in self._interval_tasks:
            del self._interval_tasks[name]
            logger.debug(f"[Timer:{self._name}] Unregistered interval task: {name}")
            return True
        return False

    def start(self) -> asyncio.Task:
        """在当前事件循环中启动主循环（幂等）"""
        task = self._task
        if task is not None and not task.done() and not task.cancelling():
            # 主循环尚未退出，恢复运行标志即可
            self._running = True
            return task
        self._running = True
        self._task = asyncio.create_task(self._loop())
        return self._task

    async def run(self) -> None:
        """Timer 主循环，持续运行直到调用 stop()"""
        if self._running:
            logger.warning(f"[Timer:{self._name}] Already running")
            return

        self._running = True
        await self._loop()

    async def _loop(self) -> None:
        logger.debug(f"[Timer:{self._name}] Started (tick={self._tick_interval}s)")

        try:
            while self._running:
                await self._tick()
                await asyncio.sleep(self._tick_interval)
        except asyncio.CancelledError:
            logger.debug(f"[Timer:{self._name}] Cancelled")
        finally:
            if self._task is None or self._task is asyncio.current_task():
                self._running = False

    def stop(self) -> None:
        """停止 Timer

        从 Timer 自身回调中调用时不取消主任务，主循环在本次 tick 结束后退出。
        """
        if not self._running:
            return

        self._running = False
        logger.debug(f"[Timer:{self._name}] Stopping...")

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _tick(self) -> None:
        """执行一次 tick，运行到期的周期任务"""
        now = asyncio.get_running_loop().time()

        for task in list(self._interval_tasks.values()):
            if not self._running:
                break
            if now - task.last_run >= task.interval:
                task.last_run = now
                await self._execute_callback(task.name, task.callback)

    async def _execute_callback(self, name: str, callback: TimerCallback) -> None:
        """执行回调（带异常隔离）"""
        try:
            result = callback()
            if inspect.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"[Timer:{self._name}] Task '{name}' failed: {e}")
            if config.METRICS_ENABLED:
                metrics.inc("timer.errors", {"task": name})

    # === 状态查询（用于测试）===

    @property
    def is_running(self) -> bool:
        """是否正在运行"""
        return self._running

    @property
    def interval_task_count(self) -> int:
        """周期任务数量"""
        return len(self._interval_tasks)

    def get_interval_tasks(self) -> list[str]:
        """获取所有周期任务名"""
        return list(self._interval_tasks.keys())
