"""Inbound event channel for voice-state notifications.

The platform client pushes raw ``VoiceStateChange`` notifications from its callbacks. One
dispatcher loop turns them into per-channel events and hands each to a lane keyed by channel id,
so events for one channel are handled in arrival order while different channels proceed in
parallel. Controller (bot) movements go to a per-guild lane as a single event.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    JOINED = "joined"
    LEFT = "left"
    CONTROLLER_MOVED = "controller_moved"


@dataclass(frozen=True)
class VoiceStateChange:
    """Raw notification: ``member_id`` went from ``before`` to ``after`` (None = not connected)."""

    guild_id: int
    member_id: int
    before_channel_id: int | None
    after_channel_id: int | None


@dataclass(frozen=True)
class ChannelEvent:
    kind: EventKind
    guild_id: int
    member_id: int
    channel_id: int | None
    previous_channel_id: int | None = None


EventHandler = Callable[[ChannelEvent], Awaitable[None]]


def split_change(change: VoiceStateChange, controller_id: int) -> list[tuple[Hashable, ChannelEvent]]:
    """Lane key and event for each channel a change touches."""
    before, after = change.before_channel_id, change.after_channel_id
    if before == after:
        return []
    if change.member_id == controller_id:
        event = ChannelEvent(
            EventKind.CONTROLLER_MOVED, change.guild_id, change.member_id, after, before
        )
        return [(("controller", change.guild_id), event)]

    routed: list[tuple[Hashable, ChannelEvent]] = []
    if before is not None:
        routed.append(
            (before, ChannelEvent(EventKind.LEFT, change.guild_id, change.member_id, before, None))
        )
    if after is not None:
        routed.append(
            (after, ChannelEvent(EventKind.JOINED, change.guild_id, change.member_id, after, before))
        )
    return routed


class EventDispatcher:
    def __init__(self, handler: EventHandler, controller_id: Callable[[], int]) -> None:
        self._handler = handler
        self._controller_id = controller_id
        self._inbound: asyncio.Queue[VoiceStateChange] = asyncio.Queue()
        self._lanes: dict[Hashable, asyncio.Queue[ChannelEvent]] = {}
        self._workers: dict[Hashable, asyncio.Task] = {}
        self._loop_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def submit(self, change: VoiceStateChange) -> None:
        """Enqueue a notification. Safe to call from platform callbacks."""
        self._inbound.put_nowait(change)

    def start(self) -> None:
        if not self.running:
            self._loop_task = asyncio.create_task(self._run(), name="event-dispatcher")

    async def stop(self) -> None:
        tasks = [t for t in (self._loop_task, *self._workers.values()) if t is not None]
        self._loop_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers.clear()
        self._lanes.clear()

    async def drain(self) -> None:
        """Wait until every submitted notification has been handled."""
        await self._inbound.join()
        while self._lanes:
            await asyncio.gather(*(lane.join() for lane in list(self._lanes.values())))
            await asyncio.sleep(0)

    async def _run(self) -> None:
        while True:
            change = await self._inbound.get()
            try:
                for key, event in split_change(change, self._controller_id()):
                    self._enqueue(key, event)
            except Exception:
                logger.exception(f"Could not route {change}")
            finally:
                self._inbound.task_done()

    def _enqueue(self, key: Hashable, event: ChannelEvent) -> None:
        lane = self._lanes.get(key)
        if lane is None:
            lane = self._lanes[key] = asyncio.Queue()
        lane.put_nowait(event)
        if key not in self._workers:
            self._workers[key] = asyncio.create_task(self._work(key, lane), name=f"lane:{key}")

    async def _work(self, key: Hashable, lane: asyncio.Queue[ChannelEvent]) -> None:
        try:
            while True:
                event = await lane.get()
                try:
                    await self._handler(event)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception(f"Handler failed for {event}")
                finally:
                    lane.task_done()
                if lane.empty():
                    # No await between the check and the removal, so no event can slip in
                    self._workers.pop(key, None)
                    self._lanes.pop(key, None)
                    return
        finally:
            if self._workers.get(key) is asyncio.current_task():
                self._workers.pop(key, None)
