"""Engine tunables, constructed once at startup and passed down through EngineContext."""

from __future__ import annotations

from dataclasses import dataclass, fields

from .models.queue import DisplayMode


@dataclass
class EngineConfig:
    """Queue engine configuration with sensible defaults."""

    # Display coalescing window; every mutation inside it collapses into one render
    display_debounce: float = 1.0
    default_display_mode: DisplayMode = DisplayMode.EDIT

    # Defaults for newly created queues
    default_grace_period: int = 0
    default_color: str = "#51ff7e"
    default_pull_num: int = 1

    # Upper bound on idle per-queue locks kept around
    max_idle_locks: int = 1024

    @classmethod
    def from_mapping(cls, values: dict) -> EngineConfig:
        """Build from a loose mapping, ignoring keys that are not config fields."""
        valid_keys = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in valid_keys})
