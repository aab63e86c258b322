"""Discord bot configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from linekeeper.config import EngineConfig
from linekeeper.database import PoolConfig
from linekeeper.models.queue import DisplayMode

logger = logging.getLogger(__name__)

BOT_NAME = "Linekeeper"
BOT_VERSION = "1.0.0"

DISCORD_DIR = Path(__file__).parent.parent
BACKEND_DIR = DISCORD_DIR.parent


class BotSettings(BaseSettings):
    """Bot settings from the environment and ``backend/.env``"""

    model_config = SettingsConfigDict(
        env_file=BACKEND_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Discord
    discord_bot_token: str = Field(..., description="Discord bot token")
    discord_guild_id: int | None = Field(
        default=None, description="Sync slash commands to this guild only (faster, for testing)"
    )

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    database_ssl: str | None = Field(default=None, description="asyncpg ssl mode, e.g. 'require'")
    database_pool_max: int = Field(default=5, description="Maximum pooled connections")

    # Queue engine
    display_debounce_seconds: float = Field(
        default=1.0, ge=0.0, description="Coalescing window for display updates"
    )
    default_grace_period: int = Field(
        default=0, ge=0, description="Grace period (seconds) for new queues"
    )
    default_color: str = Field(default="#51ff7e", description="Display color for new queues")
    default_display_mode: DisplayMode = Field(default=DisplayMode.EDIT)

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL starts with postgresql://"""
        if not v.startswith("postgresql://"):
            raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("default_color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        stripped = v.lstrip("#")
        if len(stripped) != 6 or any(c not in "0123456789abcdefABCDEF" for c in stripped):
            raise ValueError("DEFAULT_COLOR must be a hex color like #51ff7e")
        return f"#{stripped.lower()}"

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            display_debounce=self.display_debounce_seconds,
            default_display_mode=self.default_display_mode,
            default_grace_period=self.default_grace_period,
            default_color=self.default_color,
        )

    def pool_config(self) -> PoolConfig:
        return PoolConfig(max_size=self.database_pool_max, ssl=self.database_ssl)


@lru_cache
def get_settings() -> BotSettings:
    """Get cached settings instance"""
    return BotSettings()  # type: ignore[call-arg]
