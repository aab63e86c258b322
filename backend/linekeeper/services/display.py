"""Display Scheduler: keeps rendered queue displays eventually consistent.

Mutations call ``request_update``. The first request for a queue arms a render after the
coalescing window; further requests inside the window are absorbed into it. A request that
arrives while a render is running marks the queue dirty and produces one more render after it.
The render reads the queue fresh, so it always shows the latest state, and targets whose content
hash already matches are left alone.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable

from ..context import EngineContext
from ..errors import TargetGone
from ..models.display import DisplayContent, DisplayTarget
from ..models.member import MemberEntry, MemberState
from ..models.queue import DisplayMode, QueueSettings
from ..timers import TimerRegistry

logger = logging.getLogger(__name__)

ContentBuilder = Callable[[QueueSettings, list[MemberEntry]], DisplayContent]


def default_content(queue: QueueSettings, entries: list[MemberEntry]) -> DisplayContent:
    lines = []
    for position, entry in enumerate(entries, start=1):
        line = f"{position}. {entry.member_id}"
        if entry.priority:
            line += " [priority]"
        if entry.state is MemberState.GRACE:
            line += " [away]"
        lines.append(line)

    size = f"{len(entries)}/{queue.size_limit}" if queue.size_limit else str(len(entries))
    footer = f"{size} in queue"
    if queue.is_locked:
        footer += " | locked"
    return DisplayContent(
        queue_channel_id=queue.queue_channel_id,
        title=f"Queue {queue.queue_channel_id}",
        color=queue.color,
        header=queue.header,
        lines=tuple(lines),
        footer=footer,
    )


class DisplayScheduler:
    def __init__(self, ctx: EngineContext, build_content: ContentBuilder | None = None) -> None:
        self.ctx = ctx
        self.build_content = build_content or default_content
        self._timers = TimerRegistry("display")
        self._rendering: set[int] = set()
        self._dirty: set[int] = set()

    def is_pending(self, queue_id: int) -> bool:
        return queue_id in self._timers or queue_id in self._rendering

    def request_update(self, queue_id: int) -> None:
        if queue_id in self._rendering:
            self._dirty.add(queue_id)
            return
        if queue_id in self._timers:
            return
        self._timers.schedule(
            queue_id, self.ctx.config.display_debounce, functools.partial(self._fire, queue_id)
        )

    async def _fire(self, queue_id: int, generation: int) -> None:
        # Drop our own key first so requests made during the render are not absorbed into it
        self._timers.cancel(queue_id)
        self._rendering.add(queue_id)
        try:
            await self.render_now(queue_id)
        finally:
            self._rendering.discard(queue_id)
            if queue_id in self._dirty:
                self._dirty.discard(queue_id)
                self.request_update(queue_id)

    async def snapshot(self, queue_id: int) -> DisplayContent | None:
        """Current content for ``queue_id``, read under the queue lock."""
        async with self.ctx.locks.hold(queue_id):
            queue = await self.ctx.queues.get(queue_id)
            if queue is None:
                return None
            entries = await self.ctx.members.list_ordered(queue_id)
        return self.build_content(queue, entries)

    async def render_now(self, queue_id: int) -> int:
        """Bring every target of ``queue_id`` up to date. Returns how many were re-rendered."""
        content = await self.snapshot(queue_id)
        if content is None:
            return 0
        queue = await self.ctx.queues.get(queue_id)
        if queue is None:
            return 0
        mode = (await self.ctx.guilds.get_or_create(queue.guild_id)).display_mode
        digest = content.digest()

        rendered = 0
        for target in await self.ctx.displays.list_for_queue(queue_id):
            if target.content_hash == digest:
                continue
            if await self._render_target(mode, target, content, digest):
                rendered += 1
        return rendered

    async def _render_target(
        self, mode: DisplayMode, target: DisplayTarget, content: DisplayContent, digest: str
    ) -> bool:
        surface = self.ctx.surface
        channel_id = target.display_channel_id
        try:
            if mode is DisplayMode.EDIT:
                await surface.update_render_target(channel_id, target.message_id, content)
                message_id = target.message_id
            else:
                message_id = await surface.create_render_target(channel_id, content)
            await self.ctx.displays.set_rendered(target.id, message_id, digest)
        except TargetGone:
            logger.warning(
                f"Display for {target.queue_channel_id} in {channel_id} is gone, dropping binding"
            )
            await self.ctx.displays.delete(target.id)
            return False
        except Exception as e:
            logger.warning(
                f"Display render for {target.queue_channel_id} in {channel_id} failed: "
                f"{type(e).__name__}: {e}"
            )
            return False

        if mode is DisplayMode.RESEND_AND_DELETE:
            await self._delete_message(channel_id, target.message_id)
        return True

    async def create_display(self, queue_id: int, display_channel_id: int) -> DisplayTarget | None:
        """Post a display of ``queue_id`` in ``display_channel_id``, replacing an older one there."""
        content = await self.snapshot(queue_id)
        if content is None:
            return None
        previous = await self.ctx.displays.get_for_channel(queue_id, display_channel_id)
        message_id = await self.ctx.surface.create_render_target(display_channel_id, content)
        target = await self.ctx.displays.upsert(
            queue_id, display_channel_id, message_id, content.digest()
        )
        if previous is not None and previous.message_id != message_id:
            await self._delete_message(display_channel_id, previous.message_id)
        return target

    async def remove_displays(self, queue_id: int) -> int:
        self._timers.cancel(queue_id)
        self._dirty.discard(queue_id)
        targets = await self.ctx.displays.list_for_queue(queue_id)
        for target in targets:
            await self._delete_message(target.display_channel_id, target.message_id)
        await self.ctx.displays.delete_for_queue(queue_id)
        return len(targets)

    async def _delete_message(self, channel_id: int, message_id: int) -> None:
        try:
            await self.ctx.surface.delete_render_target(channel_id, message_id)
        except TargetGone:
            pass
        except Exception as e:
            logger.warning(f"Could not delete display message {message_id}: {type(e).__name__}: {e}")

    async def shutdown(self) -> None:
        await self._timers.shutdown()
