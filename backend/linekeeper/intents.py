"""Already-authorized, already-parsed requests from the command layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .models.queue import DisplayMode


@dataclass(frozen=True)
class Join:
    queue_id: int
    member_id: int
    priority: bool = False


@dataclass(frozen=True)
class Leave:
    queue_id: int
    member_id: int


@dataclass(frozen=True)
class Pull:
    queue_id: int
    count: int | None = None
    # Overrides the queue's target channel for voice queues
    destination_id: int | None = None


@dataclass(frozen=True)
class Shuffle:
    queue_id: int


@dataclass(frozen=True)
class Clear:
    queue_id: int


@dataclass(frozen=True)
class Kick:
    queue_id: int
    member_ids: tuple[int, ...]


@dataclass(frozen=True)
class SetLimit:
    queue_id: int
    limit: int | None


@dataclass(frozen=True)
class ArmVoiceTransfer:
    guild_id: int
    queue_id: int


@dataclass(frozen=True)
class DisarmVoiceTransfer:
    guild_id: int


@dataclass(frozen=True)
class CreateQueue:
    guild_id: int
    channel_id: int
    size_limit: int | None = None


@dataclass(frozen=True)
class DeleteQueue:
    queue_id: int


@dataclass(frozen=True)
class UpdateQueue:
    queue_id: int
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ShowDisplay:
    queue_id: int
    display_channel_id: int


@dataclass(frozen=True)
class SetDisplayMode:
    guild_id: int
    mode: DisplayMode


Intent = (
    Join
    | Leave
    | Pull
    | Shuffle
    | Clear
    | Kick
    | SetLimit
    | ArmVoiceTransfer
    | DisarmVoiceTransfer
    | CreateQueue
    | DeleteQueue
    | UpdateQueue
    | ShowDisplay
    | SetDisplayMode
)
