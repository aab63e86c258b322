"""Linekeeper queue engine: membership, grace timers, admission, voice transfer, display."""

from .config import EngineConfig
from .context import EngineContext
from .engine import QueueEngine

__all__ = ["EngineConfig", "EngineContext", "QueueEngine"]
