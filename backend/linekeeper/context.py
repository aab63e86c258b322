"""Explicitly constructed process context handed to every engine component.

Components hold ids and look entities up through the repositories; nothing here is a global.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import asyncpg

from .config import EngineConfig
from .interfaces import ChannelMembership, MemberHooks, NullMemberHooks, RenderSurface
from .locks import QueueLocks
from .repositories import (
    DisplayTargetRepository,
    GuildSettingsRepository,
    MemberRepository,
    QueueRepository,
)
from .timers import TimerRegistry


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class EngineContext:
    config: EngineConfig
    queues: QueueRepository
    guilds: GuildSettingsRepository
    members: MemberRepository
    displays: DisplayTargetRepository
    channels: ChannelMembership
    surface: RenderSurface
    hooks: MemberHooks = field(default_factory=NullMemberHooks)
    locks: QueueLocks = field(default_factory=QueueLocks)
    # Keyed by (queue_channel_id, member_id)
    grace_timers: TimerRegistry = field(default_factory=lambda: TimerRegistry("grace"))
    clock: Callable[[], datetime] = utcnow
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def from_pool(
        cls,
        pool: asyncpg.Pool,
        *,
        config: EngineConfig,
        channels: ChannelMembership,
        surface: RenderSurface,
        hooks: MemberHooks | None = None,
    ) -> EngineContext:
        return cls(
            config=config,
            queues=QueueRepository(pool),
            guilds=GuildSettingsRepository(pool, default_mode=config.default_display_mode),
            members=MemberRepository(pool),
            displays=DisplayTargetRepository(pool),
            channels=channels,
            surface=surface,
            hooks=hooks or NullMemberHooks(),
            locks=QueueLocks(config.max_idle_locks),
        )
