"""Data models for queue_channels and queue_guilds tables."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum


class DisplayMode(IntEnum):
    """How a guild's queue displays are refreshed."""

    EDIT = 1
    RESEND_AND_DELETE = 2
    RESEND = 3


@dataclass
class GuildSettings:
    """queue_guilds record."""

    guild_id: int
    display_mode: DisplayMode = DisplayMode.EDIT
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        self.display_mode = DisplayMode(self.display_mode)


@dataclass
class QueueSettings:
    """queue_channels record. A queue is identified by the channel it is bound to."""

    queue_channel_id: int
    guild_id: int
    color: str = "#51ff7e"
    header: str | None = None
    size_limit: int | None = None
    pull_num: int = 1
    partial_pull: bool = False
    grace_period: int = 0  # seconds
    is_locked: bool = False
    mute: bool = False
    auto_fill: bool = True
    role_id: int | None = None
    target_channel_id: int | None = None
    created_at: datetime | None = None

    def has_room(self, current_size: int) -> bool:
        return self.size_limit is None or current_size < self.size_limit
