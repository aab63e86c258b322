"""Shared plumbing for components that mutate queue membership."""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..context import EngineContext
from ..errors import QueueNotFound
from ..models.member import MemberEntry
from ..models.queue import QueueSettings

logger = logging.getLogger(__name__)

ChangeListener = Callable[[int], None]


def _ignore_change(queue_id: int) -> None:
    return None


class QueueService:
    def __init__(self, ctx: EngineContext, on_change: ChangeListener | None = None) -> None:
        self.ctx = ctx
        self._on_change = on_change or _ignore_change

    async def require_queue(self, queue_id: int) -> QueueSettings:
        queue = await self.ctx.queues.get(queue_id)
        if queue is None:
            raise QueueNotFound()
        return queue

    def changed(self, queue_id: int) -> None:
        self._on_change(queue_id)

    def forget_timers(self, queue_id: int, entries: list[MemberEntry]) -> None:
        """Cancel grace timers of members that are no longer queued. Call under the queue lock."""
        for entry in entries:
            self.ctx.grace_timers.cancel((queue_id, entry.member_id))

    async def after_join(self, queue: QueueSettings, member_id: int) -> None:
        try:
            await self.ctx.hooks.on_joined(queue, member_id)
        except Exception as e:
            logger.warning(
                f"Join side effects failed for {member_id} in {queue.queue_channel_id}: "
                f"{type(e).__name__}: {e}"
            )

    async def after_removal(self, queue: QueueSettings, entries: list[MemberEntry]) -> None:
        """Undo per-member side effects. Never undoes the removal itself."""
        for entry in entries:
            try:
                await self.ctx.hooks.on_removed(queue, entry.member_id)
            except Exception as e:
                logger.warning(
                    f"Removal side effects failed for {entry.member_id} in "
                    f"{queue.queue_channel_id}: {type(e).__name__}: {e}"
                )

    async def remove_members(self, queue_id: int, member_ids: list[int]) -> list[MemberEntry]:
        """Delete the named members (ignoring ones not queued) and run removal side effects."""
        async with self.ctx.locks.hold(queue_id):
            queue = await self.require_queue(queue_id)
            removed = await self.ctx.members.delete(queue_id, list(dict.fromkeys(member_ids)))
            self.forget_timers(queue_id, removed)

        if removed:
            await self.after_removal(queue, removed)
            self.changed(queue_id)
        return removed
