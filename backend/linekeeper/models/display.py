"""Data models for display_targets and the rendered queue snapshot."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime


@dataclass
class DisplayTarget:
    """display_targets record: one rendered message showing a queue."""

    id: int
    queue_channel_id: int
    display_channel_id: int
    message_id: int
    content_hash: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class DisplayContent:
    """Platform-neutral snapshot of what a display should show."""

    queue_channel_id: int
    title: str
    color: str
    header: str | None = None
    lines: tuple[str, ...] = field(default_factory=tuple)
    footer: str | None = None

    def digest(self) -> str:
        payload = json.dumps(asdict(self), sort_keys=True, default=str)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
