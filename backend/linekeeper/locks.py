"""Per-queue serialization.

Every mutation of a queue (join, leave, pull, shuffle, clear, grace expiry) runs while holding
that queue's lock. Different queues never contend.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class QueueLocks:
    """Bounded table of ``asyncio.Lock`` keyed by queue channel id."""

    def __init__(self, max_idle: int = 1024) -> None:
        self._max_idle = max_idle
        self._locks: dict[int, asyncio.Lock] = {}
        # Holders plus waiters per queue; a lock with users is never dropped
        self._users: dict[int, int] = {}

    def _get_lock(self, queue_id: int) -> asyncio.Lock:
        lock = self._locks.get(queue_id)
        if lock is None:
            lock = self._locks[queue_id] = asyncio.Lock()
            if len(self._locks) > self._max_idle:
                self._prune(keep=queue_id)
        return lock

    def _prune(self, keep: int) -> None:
        idle = [k for k in self._locks if k != keep and not self._users.get(k)]
        for key in idle:
            if len(self._locks) <= self._max_idle // 2:
                break
            del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)

    def locked(self, queue_id: int) -> bool:
        lock = self._locks.get(queue_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, queue_id: int) -> AsyncIterator[None]:
        lock = self._get_lock(queue_id)
        self._users[queue_id] = self._users.get(queue_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._users[queue_id] - 1
            if remaining:
                self._users[queue_id] = remaining
            else:
                del self._users[queue_id]

    def forget(self, queue_id: int) -> None:
        if queue_id in self._locks and not self._users.get(queue_id):
            del self._locks[queue_id]
