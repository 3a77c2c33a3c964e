"""Timer 模块测试"""

import asyncio

import pytest

from agentpanes.telemetry import metrics
from agentpanes.timer import Timer


@pytest.fixture
def timer():
    """创建测试用 Timer"""
    return Timer(tick_interval=0.1)  # 快速 tick 用于测试


class TestTimerInterval:
    """周期任务测试"""

    @pytest.mark.asyncio
    async def test_register_interval_sync_callback(self, timer):
        """测试同步回调的周期任务"""
        counter = {"value": 0}

        def sync_callback():
            counter["value"] += 1

        timer.register_interval("test_sync", 0.15, sync_callback, run_immediately=True)

        asyncio.create_task(timer.run())
        await asyncio.sleep(0.5)
        timer.stop()
        await asyncio.sleep(0.1)  # 等待清理

        assert counter["value"] >= 3

    @pytest.mark.asyncio
    async def test_register_interval_async_callback(self, timer):
        """测试异步回调的周期任务"""
        counter = {"value": 0}

        async def async_callback():
            counter["value"] += 1
            await asyncio.sleep(0.01)

        timer.register_interval("test_async", 0.15, async_callback, run_immediately=True)

        timer.start()
        await asyncio.sleep(0.5)
        timer.stop()
        await asyncio.sleep(0.1)

        assert counter["value"] >= 3

    @pytest.mark.asyncio
    async def test_first_run_waits_one_interval(self, timer):
        """默认等待一个 interval 后才首次执行"""
        counter = {"value": 0}

        def callback():
            counter["value"] += 1

        timer.register_interval("delayed", 0.3, callback)

        timer.start()
        await asyncio.sleep(0.15)
        assert counter["value"] == 0

        await asyncio.sleep(0.3)
        timer.stop()
        assert counter["value"] >= 1

    @pytest.mark.asyncio
    async def test_unregister_interval(self, timer):
        """测试取消注册周期任务"""
        timer.register_interval("test", 0.1, lambda: None)
        assert timer.interval_task_count == 1

        result = timer.unregister_interval("test")
        assert result is True
        assert timer.interval_task_count == 0

        # 取消不存在的任务
        result = timer.unregister_interval("nonexistent")
        assert result is False


class TestTimerErrorHandling:
    """异常处理测试"""

    @pytest.mark.asyncio
    async def test_sync_callback_exception_isolated(self, timer):
        """测试同步回调异常不影响其他任务"""
        counter = {"good": 0, "bad": 0}

        def good_callback():
            counter["good"] += 1

        def bad_callback():
            counter["bad"] += 1
            raise ValueError("Test error")

        timer.register_interval("good", 0.15, good_callback, run_immediately=True)
        timer.register_interval("bad", 0.15, bad_callback, run_immediately=True)

        timer.start()
        await asyncio.sleep(0.5)
        timer.stop()
        await asyncio.sleep(0.1)

        # 两个任务都应该执行多次
        assert counter["good"] >= 3
        assert counter["bad"] >= 3
        assert metrics.get_counter("timer.errors", {"task": "bad"}) >= 3

    @pytest.mark.asyncio
    async def test_async_callback_exception_isolated(self, timer):
        """测试异步回调异常不影响其他任务"""
        counter = {"good": 0, "bad": 0}

        async def good_callback():
            counter["good"] += 1

        async def bad_callback():
            counter["bad"] += 1
            raise RuntimeError("Async error")

        timer.register_interval("good", 0.15, good_callback, run_immediately=True)
        timer.register_interval("bad", 0.15, bad_callback, run_immediately=True)

        timer.start()
        await asyncio.sleep(0.5)
        timer.stop()
        await asyncio.sleep(0.1)

        assert counter["good"] >= 3
        assert counter["bad"] >= 3
        assert metrics.get_counter("timer.errors", {"task": "bad"}) >= 3


class TestTimerLifecycle:
    """生命周期测试"""

    @pytest.mark.asyncio
    async def test_double_run_warning(self, timer, caplog):
        """测试重复 run 产生警告"""
        asyncio.create_task(timer.run())
        await asyncio.sleep(0.1)
        assert timer.is_running is True

        # 再次 run 应该产生警告
        await timer.run()  # 立即返回
        assert "Already running" in caplog.text

        timer.stop()
        await asyncio.sleep(0.1)

    @pytest.mark.asyncio
    async def test_stop_idempotent(self, timer):
        """测试 stop 是幂等的"""
        timer.stop()  # 未启动时 stop
        timer.stop()  # 再次 stop

        timer.start()
        await asyncio.sleep(0.1)
        timer.stop()
        timer.stop()  # 再次 stop
        await asyncio.sleep(0.1)
        assert timer.is_running is False

    @pytest.mark.asyncio
    async def test_stop_before_first_tick(self, timer):
        """start 后立即 stop 不会留下运行中的循环"""
        task = timer.start()
        timer.stop()
        await asyncio.sleep(0.05)

        assert timer.is_running is False
        assert task.done()

    @pytest.mark.asyncio
    async def test_restart(self, timer):
        """stop 之后可以再次 start"""
        counter = {"value": 0}

        def callback():
            counter["value"] += 1

        timer.register_interval("count", 0.1, callback, run_immediately=True)
        timer.start()
        await asyncio.sleep(0.15)
        timer.stop()
        await asyncio.sleep(0.05)
        first = counter["value"]

        timer.start()
        await asyncio.sleep(0.25)
        timer.stop()

        assert first >= 1
        assert counter["value"] > first

    @pytest.mark.asyncio
    async def test_stop_from_callback(self, timer):
        """回调内部 stop 不会取消正在执行的回调"""
        finished = {"value": False}

        async def callback():
            timer.stop()
            await asyncio.sleep(0.01)
            finished["value"] = True

        timer.register_interval("self_stop", 0.1, callback, run_immediately=True)
        task = timer.start()
        await asyncio.sleep(0.2)

        assert finished["value"] is True
        assert timer.is_running is False
        assert task.done()

    @pytest.mark.asyncio
    async def test_get_tasks(self, timer):
        """测试获取任务列表"""
        timer.register_interval("int1", 1.0, lambda: None)
        timer.register_interval("int2", 2.0, lambda: None)

        assert set(timer.get_interval_tasks()) == {"int1", "int2"}
