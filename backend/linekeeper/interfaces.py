"""Collaborators the engine consumes but does not implement.

The discord adapter in ``linekeeper_discord.adapters`` provides the production versions; tests use
in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from .models.display import DisplayContent
from .models.queue import QueueSettings


class ChannelMembership(Protocol):
    """Who is in which channel, and moving people between channels."""

    @property
    def controller_id(self) -> int:
        """Member id of the bot account that operators drag between voice channels."""
        ...

    async def controller_channel(self, guild_id: int) -> int | None:
        """Voice channel the controller currently sits in, if any."""
        ...

    async def list_occupants(self, channel_id: int) -> set[int]:
        """Non-bot members currently in ``channel_id``. Raises ``TargetGone`` if it vanished."""
        ...

    async def channel_limit(self, channel_id: int) -> int | None:
        """Occupancy limit of ``channel_id``, ``None`` when unlimited."""
        ...

    async def channel_exists(self, channel_id: int) -> bool: ...

    async def is_voice(self, channel_id: int) -> bool:
        """Whether membership of ``channel_id`` is presence-based (voice or stage)."""
        ...

    async def move_member(self, member_id: int, from_channel_id: int, to_channel_id: int) -> None:
        """Relocate a member. Raises on failure."""
        ...


class RenderSurface(Protocol):
    """Somewhere a queue display can be shown (a message in a text channel)."""

    async def create_render_target(self, channel_id: int, content: DisplayContent) -> int:
        """Post ``content`` and return the new target id."""
        ...

    async def update_render_target(
        self, channel_id: int, target_id: int, content: DisplayContent
    ) -> None:
        """Edit in place. Raises ``TargetGone`` if the target was deleted or is inaccessible."""
        ...

    async def delete_render_target(self, channel_id: int, target_id: int) -> None: ...


class MemberHooks(Protocol):
    """Side effects of entering or leaving a queue (role, server mute)."""

    async def on_joined(self, queue: QueueSettings, member_id: int) -> None: ...

    async def on_removed(self, queue: QueueSettings, member_id: int) -> None: ...


class NullMemberHooks:
    """Hooks that do nothing, for platforms without roles or mute."""

    async def on_joined(self, queue: QueueSettings, member_id: int) -> None:
        return None

    async def on_removed(self, queue: QueueSettings, member_id: int) -> None:
        return None
