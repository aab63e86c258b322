"""Grace Timer Manager.

A member who drops out of a queue's channel enters GRACE and keeps their order key. If they come
back before ``grace_period`` seconds pass they are ACTIVE again in the same place; otherwise the
timer removes them. Timers are in-memory; ``reconcile`` rebuilds them from the database at startup.
"""

from __future__ import annotations

import functools
import logging

from ..models.member import MemberState
from .base import QueueService

logger = logging.getLogger(__name__)


class GraceTimerManager(QueueService):
    @staticmethod
    def timer_key(queue_id: int, member_id: int) -> tuple[int, int]:
        return (queue_id, member_id)

    def is_armed(self, queue_id: int, member_id: int) -> bool:
        return self.timer_key(queue_id, member_id) in self.ctx.grace_timers

    async def member_disconnected(self, queue_id: int, member_id: int) -> MemberState | None:
        """Start (or restart) the grace window. Returns the new state, None if not queued."""
        async with self.ctx.locks.hold(queue_id):
            queue = await self.require_queue(queue_id)
            entry = await self.ctx.members.get(queue_id, member_id)
            if entry is None:
                return None

            if queue.grace_period <= 0:
                removed = await self.ctx.members.delete(queue_id, [member_id])
                self.forget_timers(queue_id, removed)
                state = MemberState.REMOVED
            else:
                await self.ctx.members.set_state(
                    queue_id, member_id, MemberState.GRACE, self.ctx.clock()
                )
                self._arm(queue_id, member_id, queue.grace_period)
                removed = []
                state = MemberState.GRACE

        if removed:
            await self.after_removal(queue, removed)
        self.changed(queue_id)
        return state

    async def member_returned(self, queue_id: int, member_id: int) -> bool:
        """Restore a member in GRACE. Returns False if there was nothing to restore."""
        async with self.ctx.locks.hold(queue_id):
            entry = await self.ctx.members.get(queue_id, member_id)
            if entry is None or entry.state is not MemberState.GRACE:
                return False
            self.ctx.grace_timers.cancel(self.timer_key(queue_id, member_id))
            await self.ctx.members.set_state(queue_id, member_id, MemberState.ACTIVE, None)

        logger.debug(f"{member_id} returned to {queue_id} within grace period")
        self.changed(queue_id)
        return True

    async def reconcile(self) -> tuple[int, int]:
        """Expire overdue GRACE members and re-arm the rest. Returns (expired, rearmed)."""
        now = self.ctx.clock()
        expired = rearmed = 0
        for entry in await self.ctx.members.list_in_grace():
            queue_id, member_id = entry.queue_channel_id, entry.member_id
            queue = await self.ctx.queues.get(queue_id)
            if queue is None:
                continue
            remaining = float(queue.grace_period)
            if entry.disconnected_at is not None:
                remaining -= (now - entry.disconnected_at).total_seconds()

            if entry.disconnected_at is None or remaining <= 0:
                async with self.ctx.locks.hold(queue_id):
                    removed = await self.ctx.members.delete(queue_id, [member_id])
                    self.forget_timers(queue_id, removed)
                if removed:
                    expired += 1
                    await self.after_removal(queue, removed)
                    self.changed(queue_id)
            else:
                self._arm(queue_id, member_id, remaining)
                rearmed += 1

        if expired or rearmed:
            logger.info(f"Grace reconcile: {expired} expired, {rearmed} re-armed")
        return expired, rearmed

    def _arm(self, queue_id: int, member_id: int, delay: float) -> None:
        self.ctx.grace_timers.schedule(
            self.timer_key(queue_id, member_id),
            delay,
            functools.partial(self._expire, queue_id, member_id),
        )

    async def _expire(self, queue_id: int, member_id: int, generation: int) -> None:
        key = self.timer_key(queue_id, member_id)
        async with self.ctx.locks.hold(queue_id):
            # Superseded while waiting for the lock (member returned, or timer re-armed)
            if not self.ctx.grace_timers.is_current(key, generation):
                return
            entry = await self.ctx.members.get(queue_id, member_id)
            if entry is None or entry.state is not MemberState.GRACE:
                return
            removed = await self.ctx.members.delete(queue_id, [member_id])
            queue = await self.ctx.queues.get(queue_id)

        logger.info(f"{member_id} lost their place in {queue_id} (grace period expired)")
        if removed and queue is not None:
            await self.after_removal(queue, removed)
        self.changed(queue_id)
