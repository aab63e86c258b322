"""QueueEngine: builds the components from an EngineContext and routes intents and events."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import asyncpg

from . import intents
from .context import EngineContext
from .dispatcher import ChannelEvent, EventDispatcher, EventKind, VoiceStateChange
from .errors import QueueError, QueueFull
from .models.queue import GuildSettings, QueueSettings
from .services import (
    AdmissionEngine,
    AdmissionResult,
    DisplayScheduler,
    GraceTimerManager,
    MembershipStore,
    TransferOutcome,
    VoiceTransferCoordinator,
)
from .services.display import ContentBuilder

logger = logging.getLogger(__name__)

TransferListener = Callable[[TransferOutcome], Awaitable[None]]


class QueueEngine:
    def __init__(
        self,
        ctx: EngineContext,
        *,
        build_content: ContentBuilder | None = None,
        on_transfer: TransferListener | None = None,
    ) -> None:
        self.ctx = ctx
        self.display = DisplayScheduler(ctx, build_content)
        notify = self.display.request_update
        self.membership = MembershipStore(ctx, notify)
        self.grace = GraceTimerManager(ctx, notify)
        self.admission = AdmissionEngine(ctx, notify)
        self.transfer = VoiceTransferCoordinator(ctx, self.admission, notify)
        self.dispatcher = EventDispatcher(self.on_channel_event, lambda: ctx.channels.controller_id)
        self.on_transfer = on_transfer

        self._handlers: dict[type, Callable[[Any], Awaitable[Any]]] = {
            intents.Join: lambda i: self.membership.join(i.queue_id, i.member_id, priority=i.priority),
            intents.Leave: lambda i: self.membership.leave(i.queue_id, i.member_id),
            intents.Pull: self._pull,
            intents.Shuffle: lambda i: self.membership.shuffle(i.queue_id),
            intents.Clear: lambda i: self.membership.clear(i.queue_id),
            intents.Kick: lambda i: self.admission.kick(i.queue_id, list(i.member_ids)),
            intents.SetLimit: self._set_limit,
            intents.ArmVoiceTransfer: lambda i: self.transfer.arm(i.guild_id, i.queue_id),
            intents.DisarmVoiceTransfer: self._disarm,
            intents.CreateQueue: self._create_queue,
            intents.DeleteQueue: lambda i: self.delete_queue(i.queue_id),
            intents.UpdateQueue: self._update_queue,
            intents.ShowDisplay: lambda i: self.display.create_display(i.queue_id, i.display_channel_id),
            intents.SetDisplayMode: self._set_display_mode,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self.grace.reconcile()
        self.dispatcher.start()
        logger.info("Queue engine started")

    async def stop(self) -> None:
        await self.dispatcher.stop()
        await self.display.shutdown()
        await self.ctx.grace_timers.shutdown()
        logger.info("Queue engine stopped")

    async def validate_guild(self, guild_id: int) -> int:
        """Delete queues whose channel no longer exists. Returns how many were deleted."""
        removed = 0
        for queue in await self.ctx.queues.list_for_guild(guild_id):
            if not await self.ctx.channels.channel_exists(queue.queue_channel_id):
                await self.delete_queue(queue.queue_channel_id)
                removed += 1
        if removed:
            logger.info(f"Removed {removed} queue(s) with deleted channels in guild {guild_id}")
        return removed

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def handle(self, intent: intents.Intent) -> Any:
        """Apply an intent. Recoverable failures raise a QueueError subclass."""
        handler = self._handlers.get(type(intent))
        if handler is None:
            raise TypeError(f"Unsupported intent: {type(intent).__name__}")
        return await handler(intent)

    async def _pull(self, intent: intents.Pull) -> AdmissionResult:
        queue = await self.membership.require_queue(intent.queue_id)
        destination_id = intent.destination_id or queue.target_channel_id
        if destination_id is None or not await self.ctx.channels.is_voice(intent.queue_id):
            return await self.admission.pull(intent.queue_id, intent.count)

        destination = await self.transfer.destination_for(destination_id)
        return await self.admission.pull(
            intent.queue_id,
            intent.count,
            destination=destination,
            relocate=self.transfer.relocator(intent.queue_id, destination_id),
            active_only=True,
        )

    async def _set_limit(self, intent: intents.SetLimit) -> QueueSettings:
        if intent.limit is not None and intent.limit < 1:
            raise QueueError("The size limit must be at least 1.")
        return await self._update_queue(
            intents.UpdateQueue(intent.queue_id, {"size_limit": intent.limit})
        )

    async def _update_queue(self, intent: intents.UpdateQueue) -> QueueSettings:
        await self.membership.require_queue(intent.queue_id)
        async with self.ctx.locks.hold(intent.queue_id):
            queue = await self.ctx.queues.update(intent.queue_id, **intent.changes)
        self.display.request_update(intent.queue_id)
        return queue

    async def _disarm(self, intent: intents.DisarmVoiceTransfer) -> bool:
        return self.transfer.teardown(intent.guild_id) is not None

    async def _set_display_mode(self, intent: intents.SetDisplayMode) -> GuildSettings:
        return await self.ctx.guilds.set_display_mode(intent.guild_id, intent.mode)

    async def _create_queue(self, intent: intents.CreateQueue) -> QueueSettings:
        cfg = self.ctx.config
        try:
            queue = await self.ctx.queues.create(
                intent.channel_id,
                intent.guild_id,
                color=cfg.default_color,
                grace_period=cfg.default_grace_period,
                pull_num=cfg.default_pull_num,
                size_limit=intent.size_limit,
            )
        except asyncpg.UniqueViolationError as e:
            raise QueueError("That channel is already a queue.") from e

        if await self.ctx.channels.is_voice(intent.channel_id):
            for member_id in sorted(await self.ctx.channels.list_occupants(intent.channel_id)):
                try:
                    await self.membership.join(intent.channel_id, member_id, force=True)
                except QueueFull:
                    break
        logger.info(f"Created queue {intent.channel_id} in guild {intent.guild_id}")
        return queue

    async def delete_queue(self, queue_id: int) -> bool:
        self.transfer.queue_deleted(queue_id)
        await self.display.remove_displays(queue_id)
        if await self.ctx.queues.get(queue_id) is not None:
            await self.membership.clear(queue_id)
        deleted = await self.ctx.queues.delete(queue_id)
        self.ctx.locks.forget(queue_id)
        if deleted:
            logger.info(f"Deleted queue {queue_id}")
        return deleted

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def submit(self, change: VoiceStateChange) -> None:
        self.dispatcher.submit(change)

    async def on_channel_event(self, event: ChannelEvent) -> None:
        if event.kind is EventKind.CONTROLLER_MOVED:
            outcome = await self.transfer.controller_moved(
                event.guild_id, event.previous_channel_id, event.channel_id
            )
            if outcome is not None and self.on_transfer is not None:
                await self.on_transfer(outcome)
            return

        channel_id = event.channel_id
        if channel_id is None:
            return
        queue = await self.ctx.queues.get(channel_id)

        if event.kind is EventKind.JOINED:
            if queue is None:
                return
            if await self.grace.member_returned(channel_id, event.member_id):
                return
            try:
                await self.membership.join(channel_id, event.member_id)
            except QueueError as e:
                logger.debug(f"{event.member_id} entered {channel_id} but was not queued: {e.message}")
            return

        if queue is not None:
            await self.grace.member_disconnected(channel_id, event.member_id)
        await self.transfer.auto_fill(channel_id)
