"""Admission Engine: pull the head of the line out of a queue.

Precedence when several limits apply: an empty source is reported first, then a short source
(``InsufficientMembers`` unless partial pulls are allowed), then a full destination.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ..errors import (
    DestinationFull,
    InsufficientMembers,
    NotQueued,
    QueueEmpty,
    QueueError,
    RelocationFailed,
)
from ..models.member import MemberEntry, MemberState
from ..models.queue import QueueSettings
from .base import QueueService

logger = logging.getLogger(__name__)

Relocator = Callable[[list[MemberEntry]], Awaitable[None]]


@dataclass(frozen=True)
class Destination:
    """Where pulled members go, and how much room it has."""

    channel_id: int | None = None
    size_limit: int | None = None
    current_size: int = 0

    @property
    def headroom(self) -> int | None:
        if self.size_limit is None:
            return None
        return max(0, self.size_limit - self.current_size)


@dataclass
class AdmissionResult:
    queue_channel_id: int
    requested: int
    members: list[MemberEntry] = field(default_factory=list)
    destination: Destination | None = None

    @property
    def member_ids(self) -> list[int]:
        return [e.member_id for e in self.members]


def plan_admission(
    queue: QueueSettings,
    available: int,
    count: int | None = None,
    destination: Destination | None = None,
    *,
    allow_partial: bool | None = None,
) -> int:
    """How many members to pull. Raises the matching QueueError when the answer is none."""
    requested = count if count is not None else queue.pull_num
    partial = queue.partial_pull if allow_partial is None else allow_partial

    if available == 0:
        raise QueueEmpty()
    k = requested
    if available < requested:
        if not partial:
            raise InsufficientMembers(requested, available)
        k = available

    if destination is not None and destination.headroom is not None:
        if destination.headroom == 0:
            raise DestinationFull()
        k = min(k, destination.headroom)
    return k


class AdmissionEngine(QueueService):
    async def pull(
        self,
        queue_id: int,
        count: int | None = None,
        *,
        destination: Destination | None = None,
        relocate: Relocator | None = None,
        active_only: bool = False,
        allow_partial: bool | None = None,
    ) -> AdmissionResult:
        """Remove the first ``k`` of the queue as one unit.

        ``relocate`` runs while the queue lock is still held. If it raises, the removed rows are
        restored with their original order keys and the error surfaces as ``RelocationFailed``.
        ``active_only`` skips members in GRACE (they are not in the channel to be moved).
        """
        async with self.ctx.locks.hold(queue_id):
            queue = await self.require_queue(queue_id)
            ordered = await self.ctx.members.list_ordered(queue_id)
            if active_only:
                ordered = [e for e in ordered if e.state is MemberState.ACTIVE]

            k = plan_admission(
                queue, len(ordered), count, destination, allow_partial=allow_partial
            )
            chosen = [e.member_id for e in ordered[:k]]
            removed = await self.ctx.members.delete(queue_id, chosen)

            if relocate is not None:
                try:
                    await relocate(removed)
                except Exception as e:
                    await self.ctx.members.restore(removed)
                    logger.warning(
                        f"Pull from {queue_id} rolled back, relocation failed: "
                        f"{type(e).__name__}: {e}"
                    )
                    if isinstance(e, QueueError):
                        raise
                    raise RelocationFailed() from e

            self.forget_timers(queue_id, removed)

        result = AdmissionResult(
            queue_channel_id=queue_id,
            requested=count if count is not None else queue.pull_num,
            members=removed,
            destination=destination,
        )
        logger.info(f"Pulled {len(removed)} from {queue_id}: {result.member_ids}")
        await self.after_removal(queue, removed)
        self.changed(queue_id)
        return result

    async def kick(self, queue_id: int, member_ids: list[int]) -> list[MemberEntry]:
        """Remove specific members regardless of their place in line."""
        removed = await self.remove_members(queue_id, member_ids)
        if not removed:
            raise NotQueued("None of those members are in this queue.")
        logger.info(f"Kicked {[e.member_id for e in removed]} from {queue_id}")
        return removed
