"""Data model for queue_members table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class MemberState(str, Enum):
    """Persisted member states. ``REMOVED`` is never stored: the row is deleted instead."""

    ACTIVE = "active"
    GRACE = "grace"
    REMOVED = "removed"


@dataclass
class MemberEntry:
    """Queue member record, unique per (queue_channel_id, member_id)."""

    queue_channel_id: int
    member_id: int
    order_key: int
    joined_at: datetime
    priority: bool = False
    state: MemberState = MemberState.ACTIVE
    disconnected_at: datetime | None = None

    def __post_init__(self) -> None:
        self.state = MemberState(self.state)

    @property
    def sort_key(self) -> tuple[int, int, datetime]:
        """Ordering used everywhere for "who is next": priority first, then order key."""
        return (0 if self.priority else 1, self.order_key, self.joined_at)
