"""Logging configuration"""

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that log every gateway event or query at INFO
NOISY_LOGGERS = ("discord", "discord.http", "discord.gateway", "asyncpg")


def _rich_handler() -> RichHandler:
    if sys.platform == "win32":
        import codecs

        sys.stdout = codecs.getwriter("utf-8")(sys.stdout.buffer)
        sys.stderr = codecs.getwriter("utf-8")(sys.stderr.buffer)

    handler = RichHandler(
        console=Console(width=120),
        show_path=False,
        markup=True,
        rich_tracebacks=True,
        tracebacks_width=120,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))
    return handler


def setup_logging(level_name: str = "INFO") -> None:
    """Route every logger through Rich at ``level_name``; plain output if Rich cannot start"""
    level = getattr(logging, level_name.upper(), logging.INFO)

    try:
        logging.basicConfig(level=level, handlers=[_rich_handler()], force=True)
    except Exception as e:
        logging.basicConfig(level=level, format=PLAIN_FORMAT, force=True)
        logging.getLogger(__name__).warning(f"Rich logging setup failed: {e}, using plain logging")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
