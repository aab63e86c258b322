"""Data models for queue_guilds, queue_channels, queue_members and display_targets."""

from .display import DisplayContent, DisplayTarget
from .member import MemberEntry, MemberState
from .queue import DisplayMode, GuildSettings, QueueSettings

__all__ = [
    "DisplayContent",
    "DisplayMode",
    "DisplayTarget",
    "GuildSettings",
    "MemberEntry",
    "MemberState",
    "QueueSettings",
]
