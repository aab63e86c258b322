"""Voice Transfer Coordinator: the drag-and-swap pull for voice queues.

An operator arms a session on a source queue. Once the bot (the controller) sits in the source
channel the session is WAITING. Dragging the bot into any other channel makes that channel the
destination: members are pulled from the source, moved there, and the bot is moved back to the
source for the next drag.

Sessions live in memory only. After a restart every session is IDLE and has to be re-armed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..errors import QueueError, RelocationFailed
from ..models.member import MemberEntry
from .admission import AdmissionEngine, AdmissionResult, Destination, Relocator
from .base import QueueService

logger = logging.getLogger(__name__)


class TransferState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    WAITING = "waiting"


@dataclass
class TransferSession:
    guild_id: int
    source_queue_id: int
    state: TransferState = TransferState.ARMED


@dataclass
class TransferOutcome:
    session: TransferSession
    destination_channel_id: int
    result: AdmissionResult | None = None
    error: QueueError | None = None


class VoiceTransferCoordinator(QueueService):
    def __init__(self, ctx, admission: AdmissionEngine, on_change=None) -> None:
        super().__init__(ctx, on_change)
        self.admission = admission
        # One controller per guild, so at most one session per guild
        self._sessions: dict[int, TransferSession] = {}

    def session(self, guild_id: int) -> TransferSession | None:
        return self._sessions.get(guild_id)

    def state(self, guild_id: int) -> TransferState:
        session = self._sessions.get(guild_id)
        return session.state if session else TransferState.IDLE

    async def arm(self, guild_id: int, queue_id: int) -> TransferSession:
        """Bind the guild's controller to ``queue_id``. Replaces any previous session."""
        await self.require_queue(queue_id)
        session = TransferSession(guild_id=guild_id, source_queue_id=queue_id)
        if await self.ctx.channels.controller_channel(guild_id) == queue_id:
            session.state = TransferState.WAITING
        self._sessions[guild_id] = session
        logger.info(f"Voice transfer armed on {queue_id} (guild {guild_id})")
        return session

    def teardown(self, guild_id: int) -> TransferSession | None:
        session = self._sessions.pop(guild_id, None)
        if session is not None:
            logger.info(f"Voice transfer on {session.source_queue_id} torn down")
        return session

    def queue_deleted(self, queue_id: int) -> None:
        for guild_id, session in list(self._sessions.items()):
            if session.source_queue_id == queue_id:
                self.teardown(guild_id)

    async def controller_moved(
        self, guild_id: int, from_channel_id: int | None, to_channel_id: int | None
    ) -> TransferOutcome | None:
        """React to the controller changing voice channel. Returns an outcome when a pull ran."""
        session = self._sessions.get(guild_id)
        if session is None:
            return None
        source = session.source_queue_id

        if to_channel_id is None:
            self.teardown(guild_id)
            return None

        if session.state is TransferState.ARMED:
            if to_channel_id == source:
                session.state = TransferState.WAITING
                logger.debug(f"Voice transfer on {source} waiting for a drag")
            return None

        # WAITING: only a drag out of the source counts; moving back in is our own doing
        if to_channel_id == source or from_channel_id != source:
            return None

        outcome = TransferOutcome(session=session, destination_channel_id=to_channel_id)
        try:
            outcome.result = await self._pull_into(source, to_channel_id)
        except QueueError as e:
            outcome.error = e
            logger.info(f"Voice transfer from {source} to {to_channel_id}: {e.message}")
        finally:
            await self._return_controller(session, to_channel_id)
        return outcome

    async def auto_fill(self, target_channel_id: int) -> list[AdmissionResult]:
        """Top up ``target_channel_id`` from every auto-fill queue that targets it."""
        results: list[AdmissionResult] = []
        for queue in await self.ctx.queues.list_by_target(target_channel_id):
            if not queue.auto_fill:
                continue
            limit = await self.ctx.channels.channel_limit(target_channel_id)
            if limit is None:
                continue
            occupants = await self.ctx.channels.list_occupants(target_channel_id)
            destination = Destination(target_channel_id, limit, len(occupants))
            if not destination.headroom:
                continue
            try:
                results.append(
                    await self.admission.pull(
                        queue.queue_channel_id,
                        destination.headroom,
                        destination=destination,
                        relocate=self.relocator(queue.queue_channel_id, target_channel_id),
                        active_only=True,
                        allow_partial=True,
                    )
                )
            except QueueError as e:
                logger.debug(f"Auto-fill {queue.queue_channel_id} -> {target_channel_id}: {e.message}")
        return results

    async def destination_for(self, channel_id: int) -> Destination:
        """Capacity of a channel: its queue size limit if it is a queue, else its user limit."""
        queue = await self.ctx.queues.get(channel_id)
        if queue is not None and queue.size_limit is not None:
            return Destination(channel_id, queue.size_limit, await self.ctx.members.count(channel_id))
        limit = await self.ctx.channels.channel_limit(channel_id)
        occupants = await self.ctx.channels.list_occupants(channel_id)
        return Destination(channel_id, limit, len(occupants))

    def relocator(self, from_channel_id: int, to_channel_id: int) -> Relocator:
        """Move every pulled member, or put the ones already moved back and fail."""

        async def relocate(entries: list[MemberEntry]) -> None:
            moved: list[int] = []
            try:
                for entry in entries:
                    await self.ctx.channels.move_member(
                        entry.member_id, from_channel_id, to_channel_id
                    )
                    moved.append(entry.member_id)
            except Exception as e:
                for member_id in reversed(moved):
                    try:
                        await self.ctx.channels.move_member(member_id, to_channel_id, from_channel_id)
                    except Exception as undo_error:
                        logger.warning(
                            f"Could not move {member_id} back to {from_channel_id}: {undo_error}"
                        )
                raise RelocationFailed() from e

        return relocate

    async def _pull_into(self, source: int, destination_channel_id: int) -> AdmissionResult:
        destination = await self.destination_for(destination_channel_id)
        # A limited destination asks for its headroom; otherwise the queue's pull count
        count = destination.headroom if destination.size_limit is not None else None
        return await self.admission.pull(
            source,
            count or None,
            destination=destination,
            relocate=self.relocator(source, destination_channel_id),
            active_only=True,
            allow_partial=True if destination.size_limit is not None else None,
        )

    async def _return_controller(self, session: TransferSession, from_channel_id: int) -> None:
        try:
            await self.ctx.channels.move_member(
                self.ctx.channels.controller_id, from_channel_id, session.source_queue_id
            )
        except Exception as e:
            logger.warning(
                f"Could not return controller to {session.source_queue_id}: {type(e).__name__}: {e}"
            )
