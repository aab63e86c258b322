"""Keyed one-shot timers with cancel-and-replace semantics.

At most one timer is outstanding per key. Scheduling a key that already has a timer cancels the
old one. Each timer carries a generation number so a callback that already woke up can tell
whether it was superseded while it waited for the queue lock.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TimerCallback = Callable[[int], Awaitable[None]]


@dataclass
class _Timer:
    generation: int
    task: asyncio.Task


class TimerRegistry:
    def __init__(self, name: str = "timers") -> None:
        self.name = name
        self._timers: dict[Hashable, _Timer] = {}
        self._generations = itertools.count(1)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def schedule(self, key: Hashable, delay: float, callback: TimerCallback) -> int:
        """Arm ``callback(generation)`` to run after ``delay`` seconds, replacing any timer on ``key``."""
        self.cancel(key)
        generation = next(self._generations)
        task = asyncio.create_task(
            self._run(key, generation, max(0.0, delay), callback),
            name=f"{self.name}:{key}",
        )
        self._timers[key] = _Timer(generation, task)
        return generation

    def is_current(self, key: Hashable, generation: int) -> bool:
        timer = self._timers.get(key)
        return timer is not None and timer.generation == generation

    def cancel(self, key: Hashable) -> bool:
        """Cancel the timer on ``key``. Returns True if one was outstanding."""
        timer = self._timers.pop(key, None)
        if timer is None:
            return False
        # A callback cancelling its own key must not kill itself mid-write
        if timer.task is not asyncio.current_task():
            timer.task.cancel()
        return True

    async def shutdown(self) -> None:
        tasks = [t.task for t in self._timers.values()]
        self._timers.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(
        self, key: Hashable, generation: int, delay: float, callback: TimerCallback
    ) -> None:
        await asyncio.sleep(delay)
        if not self.is_current(key, generation):
            return
        try:
            await callback(generation)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"[{self.name}] timer {key!r} failed")
        finally:
            if self.is_current(key, generation):
                del self._timers[key]
