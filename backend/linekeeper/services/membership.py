"""Membership Store: join, leave, ordering, shuffle, clear.

``list_ordered`` is the single source of truth for "who is next". Every mutation runs under
the queue's lock, so a join racing a shuffle lands either before or after it.
"""

from __future__ import annotations

import logging

import asyncpg

from ..errors import AlreadyQueued, NotQueued, QueueFull, QueueLocked
from ..models.member import MemberEntry
from .base import QueueService

logger = logging.getLogger(__name__)


class MembershipStore(QueueService):
    async def join(
        self, queue_id: int, member_id: int, *, priority: bool = False, force: bool = False
    ) -> MemberEntry:
        """Append ``member_id`` to the queue.

        Priority members go ahead of every non-priority member but stay FIFO among themselves.
        ``force`` skips the lock check (used when seeding a voice queue from its occupants).
        """
        async with self.ctx.locks.hold(queue_id):
            queue = await self.require_queue(queue_id)
            if queue.is_locked and not force:
                raise QueueLocked()
            if await self.ctx.members.get(queue_id, member_id) is not None:
                raise AlreadyQueued()
            if not queue.has_room(await self.ctx.members.count(queue_id)):
                raise QueueFull()
            try:
                entry = await self.ctx.members.add(queue_id, member_id, priority=priority)
            except asyncpg.UniqueViolationError as e:
                raise AlreadyQueued() from e

        logger.debug(f"{member_id} joined {queue_id} (order_key={entry.order_key})")
        await self.after_join(queue, member_id)
        self.changed(queue_id)
        return entry

    async def leave(self, queue_id: int, member_id: int) -> MemberEntry:
        """Remove immediately, without a grace window."""
        removed = await self.remove_members(queue_id, [member_id])
        if not removed:
            raise NotQueued()
        return removed[0]

    async def list_ordered(self, queue_id: int) -> list[MemberEntry]:
        return await self.ctx.members.list_ordered(queue_id)

    async def position(self, queue_id: int, member_id: int) -> int | None:
        """1-based place in line, or None when not queued."""
        entries = await self.ctx.members.list_ordered(queue_id)
        return next((i for i, e in enumerate(entries, start=1) if e.member_id == member_id), None)

    async def shuffle(self, queue_id: int) -> list[MemberEntry]:
        """Uniformly permute the queue. Priority members still stay ahead of the rest."""
        async with self.ctx.locks.hold(queue_id):
            await self.require_queue(queue_id)
            member_ids = [e.member_id for e in await self.ctx.members.list_ordered(queue_id)]
            # random.shuffle is Fisher-Yates: every permutation equally likely
            self.ctx.rng.shuffle(member_ids)
            await self.ctx.members.reorder(queue_id, member_ids)
            entries = await self.ctx.members.list_ordered(queue_id)

        logger.info(f"Shuffled {queue_id} ({len(entries)} members)")
        self.changed(queue_id)
        return entries

    async def clear(self, queue_id: int) -> list[MemberEntry]:
        async with self.ctx.locks.hold(queue_id):
            queue = await self.require_queue(queue_id)
            removed = await self.ctx.members.clear(queue_id)
            self.forget_timers(queue_id, removed)

        logger.info(f"Cleared {queue_id} ({len(removed)} members)")
        await self.after_removal(queue, removed)
        self.changed(queue_id)
        return removed
