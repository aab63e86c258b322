"""Keyed timers and per-queue locks."""

import asyncio

from linekeeper.locks import QueueLocks
from linekeeper.timers import TimerRegistry


class TestTimerRegistry:
    async def test_fires_once(self):
        timers = TimerRegistry("test")
        fired = []

        async def callback(generation):
            fired.append(generation)

        generation = timers.schedule("a", 0.01, callback)
        await asyncio.sleep(0.03)

        assert fired == [generation]
        assert "a" not in timers

    async def test_rescheduling_replaces(self):
        timers = TimerRegistry("test")
        fired = []

        async def callback(generation):
            fired.append(generation)

        timers.schedule("a", 0.01, callback)
        second = timers.schedule("a", 0.02, callback)
        await asyncio.sleep(0.05)

        assert fired == [second]

    async def test_cancel(self):
        timers = TimerRegistry("test")
        fired = []

        async def callback(generation):
            fired.append(generation)

        timers.schedule("a", 0.01, callback)
        assert timers.cancel("a")
        assert not timers.cancel("a")
        await asyncio.sleep(0.03)

        assert fired == []

    async def test_callback_can_cancel_its_own_key(self):
        timers = TimerRegistry("test")
        finished = []

        async def callback(generation):
            timers.cancel("a")
            await asyncio.sleep(0)
            finished.append(generation)

        timers.schedule("a", 0, callback)
        await asyncio.sleep(0.02)

        assert len(finished) == 1

    async def test_failing_callback_is_contained(self):
        timers = TimerRegistry("test")

        async def callback(generation):
            raise RuntimeError("boom")

        timers.schedule("a", 0, callback)
        await asyncio.sleep(0.01)

        assert len(timers) == 0

    async def test_cancel_one_then_shutdown(self):
        timers = TimerRegistry("test")

        async def callback(generation):
            return None

        for key in [(1, 1), (1, 2), (2, 1)]:
            timers.schedule(key, 10, callback)

        assert timers.cancel((1, 2))
        assert not timers.cancel((1, 2))
        assert len(timers) == 2
        await timers.shutdown()
        assert len(timers) == 0


class TestQueueLocks:
    async def test_serializes_one_queue(self):
        locks = QueueLocks()
        order = []

        async def critical(name):
            async with locks.hold(1):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(critical("a"), critical("b"))

        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    async def test_queues_do_not_contend(self):
        locks = QueueLocks()

        async with locks.hold(1):
            assert locks.locked(1)
            async with locks.hold(2):
                assert locks.locked(2)

    async def test_idle_locks_are_pruned(self):
        locks = QueueLocks(max_idle=4)
        for queue_id in range(10):
            async with locks.hold(queue_id):
                pass

        assert len(locks) <= 4

    async def test_busy_lock_survives_pruning(self):
        locks = QueueLocks(max_idle=2)
        async with locks.hold(1):
            for queue_id in range(2, 8):
                async with locks.hold(queue_id):
                    pass
            locks.forget(1)
            assert locks.locked(1)
