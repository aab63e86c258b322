"""asyncpg repositories backing the queue engine (the persistence collaborator)."""

from .display import DisplayTargetRepository
from .member import MemberRepository
from .queue import GuildSettingsRepository, QueueRepository

__all__ = [
    "DisplayTargetRepository",
    "GuildSettingsRepository",
    "MemberRepository",
    "QueueRepository",
]
