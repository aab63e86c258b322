"""Core modules for the Discord bot."""

from .config import BOT_NAME, BOT_VERSION, DISCORD_DIR, BotSettings, get_settings
from .logging import setup_logging

__all__ = [
    "BOT_NAME",
    "BOT_VERSION",
    "DISCORD_DIR",
    "BotSettings",
    "get_settings",
    "setup_logging",
]
