"""SpawnQueue / DeferredQueue 测试"""

import asyncio
from datetime import datetime, timedelta

import pytest

from agentpanes.session.queue import DeferredQueue, SpawnQueue
from agentpanes.telemetry import metrics


class TestSpawnQueue:
    """串行任务队列"""

    @pytest.mark.asyncio
    async def test_jobs_never_overlap(self):
        """并发提交的任务串行执行"""
        queue = SpawnQueue()
        active = {"now": 0, "max": 0}
        order: list[int] = []

        def make_job(n: int):
            async def job():
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
                await asyncio.sleep(0.01)
                order.append(n)
                active["now"] -= 1
            return job

        await asyncio.gather(*(queue.submit(make_job(n)) for n in range(5)))

        assert active["max"] == 1
        assert order == [0, 1, 2, 3, 4]
        await queue.close()

    @pytest.mark.asyncio
    async def test_failing_job_isolated(self):
        queue = SpawnQueue()
        ran: list[str] = []

        async def bad():
            raise RuntimeError("boom")

        async def good():
            ran.append("good")

        await queue.submit(bad)
        await queue.submit(good)

        assert ran == ["good"]
        assert metrics.get_counter("spawn_queue.errors") == 1
        await queue.close()

    @pytest.mark.asyncio
    async def test_drain_waits_for_pending(self):
        queue = SpawnQueue()
        done: list[int] = []

        async def job():
            await asyncio.sleep(0.02)
            done.append(1)

        tasks = [asyncio.create_task(queue.submit(job)) for _ in range(3)]
        await asyncio.sleep(0)
        await queue.drain()

        assert done == [1, 1, 1]
        assert queue.depth == 0
        assert queue.is_busy is False
        await asyncio.gather(*tasks)
        await queue.close()

    @pytest.mark.asyncio
    async def test_closed_queue_ignores_jobs(self):
        queue = SpawnQueue()
        await queue.close()
        ran: list[int] = []

        async def job():
            ran.append(1)

        await queue.submit(job)
        assert ran == []


class TestDeferredQueue:
    """延迟挂载队列"""

    def test_fifo(self):
        queue = DeferredQueue()
        queue.enqueue("ses_1", "a")
        queue.enqueue("ses_2", "b")

        assert queue.peek().session_id == "ses_1"
        assert queue.pop().session_id == "ses_1"
        assert queue.session_ids == ["ses_2"]

    def test_duplicate_ignored(self):
        queue = DeferredQueue()
        assert queue.enqueue("ses_1", "a") is True
        assert queue.enqueue("ses_1", "a") is False
        assert len(queue) == 1

    def test_full_drops_newest(self):
        """队列满时丢弃新请求，已排队请求保留"""
        queue = DeferredQueue(max_size=2)
        queue.enqueue("ses_1", "a")
        queue.enqueue("ses_2", "b")

        assert queue.enqueue("ses_3", "c") is False
        assert queue.session_ids == ["ses_1", "ses_2"]
        assert metrics.get_counter("deferred.dropped") == 1
        assert metrics.get_gauge("deferred.depth") == 2

    def test_remove(self):
        queue = DeferredQueue()
        queue.enqueue("ses_1", "a")

        assert queue.remove("ses_1") is True
        assert queue.remove("ses_1") is False
        assert "ses_1" not in queue
        assert not queue

    def test_expiry(self):
        queue = DeferredQueue(ttl_seconds=300)
        queued_at = datetime(2025, 1, 1, 12, 0, 0)
        queue.enqueue("ses_1", "a", now=queued_at)
        entry = queue.get("ses_1")

        assert queue.is_expired(entry, queued_at + timedelta(seconds=300)) is False
        assert queue.is_expired(entry, queued_at + timedelta(seconds=301)) is True

    def test_clear(self):
        queue = DeferredQueue()
        queue.enqueue("ses_1", "a")
        queue.enqueue("ses_2", "b")

        assert queue.clear() == 2
        assert queue.peek() is None
        assert queue.pop() is None
        assert metrics.get_gauge("deferred.depth") == 0
