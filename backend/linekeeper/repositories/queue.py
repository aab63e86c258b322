"""Repository for queue_channels and queue_guilds tables."""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from ..cache import AsyncTTLCache, cached
from ..models.queue import DisplayMode, GuildSettings, QueueSettings

logger = logging.getLogger(__name__)

_QUEUE_COLUMNS = (
    "queue_channel_id, guild_id, color, header, size_limit, pull_num, partial_pull, "
    "grace_period, is_locked, mute, auto_fill, role_id, target_channel_id, created_at"
)

# Columns an operator may change after creation
_UPDATABLE = frozenset(
    {
        "color",
        "header",
        "size_limit",
        "pull_num",
        "partial_pull",
        "grace_period",
        "is_locked",
        "mute",
        "auto_fill",
        "role_id",
        "target_channel_id",
    }
)

_GUILD_COLUMNS = "guild_id, display_mode, created_at"

_queue_cache = AsyncTTLCache(maxsize=512, ttl=120)
_guild_cache = AsyncTTLCache(maxsize=128, ttl=300)


class QueueRepository:
    """Pure SQL operations for queue_channels."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @cached(cache=_queue_cache, key_func=lambda self, queue_id: f"queue:{queue_id}")
    async def get(self, queue_id: int) -> QueueSettings | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_QUEUE_COLUMNS} FROM queue_channels WHERE queue_channel_id = $1",
                queue_id,
            )
            return QueueSettings(**dict(row)) if row else None

    async def create(
        self,
        queue_id: int,
        guild_id: int,
        *,
        color: str,
        grace_period: int,
        pull_num: int = 1,
        size_limit: int | None = None,
    ) -> QueueSettings:
        """Insert a queue row. Raises UniqueViolationError if the channel already is a queue."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO queue_channels
                    (queue_channel_id, guild_id, color, grace_period, pull_num, size_limit)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {_QUEUE_COLUMNS}
                """,
                queue_id,
                guild_id,
                color,
                grace_period,
                pull_num,
                size_limit,
            )
        _queue_cache.invalidate(f"queue:{queue_id}")
        return QueueSettings(**dict(row))

    async def update(self, queue_id: int, **changes: Any) -> QueueSettings | None:
        """Update the given columns. ``None`` clears a nullable column."""
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update queue columns: {', '.join(sorted(unknown))}")
        if not changes:
            return await self.get(queue_id)

        names = list(changes)
        assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(names, start=2))
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"UPDATE queue_channels SET {assignments} WHERE queue_channel_id = $1 "
                f"RETURNING {_QUEUE_COLUMNS}",
                queue_id,
                *(changes[name] for name in names),
            )
        _queue_cache.invalidate(f"queue:{queue_id}")
        return QueueSettings(**dict(row)) if row else None

    async def delete(self, queue_id: int) -> bool:
        """Delete a queue; members and display targets cascade."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM queue_channels WHERE queue_channel_id = $1", queue_id
            )
        _queue_cache.invalidate(f"queue:{queue_id}")
        return result == "DELETE 1"

    async def list_for_guild(self, guild_id: int) -> list[QueueSettings]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_QUEUE_COLUMNS} FROM queue_channels WHERE guild_id = $1 "
                "ORDER BY created_at ASC",
                guild_id,
            )
            return [QueueSettings(**dict(row)) for row in rows]

    async def list_by_target(self, target_channel_id: int) -> list[QueueSettings]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_QUEUE_COLUMNS} FROM queue_channels WHERE target_channel_id = $1",
                target_channel_id,
            )
            return [QueueSettings(**dict(row)) for row in rows]


class GuildSettingsRepository:
    """Pure SQL operations for queue_guilds."""

    def __init__(self, pool: asyncpg.Pool, default_mode: DisplayMode = DisplayMode.EDIT) -> None:
        self.pool = pool
        # Display mode given to guilds seen for the first time
        self.default_mode = default_mode

    @cached(cache=_guild_cache, key_func=lambda self, guild_id: f"guild:{guild_id}")
    async def get_or_create(self, guild_id: int) -> GuildSettings:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO queue_guilds (guild_id, display_mode)
                VALUES ($1, $2)
                ON CONFLICT (guild_id) DO UPDATE SET guild_id = EXCLUDED.guild_id
                RETURNING {_GUILD_COLUMNS}
                """,
                guild_id,
                int(self.default_mode),
            )
            return GuildSettings(**dict(row))

    async def set_display_mode(self, guild_id: int, mode: DisplayMode) -> GuildSettings:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO queue_guilds (guild_id, display_mode)
                VALUES ($1, $2)
                ON CONFLICT (guild_id) DO UPDATE SET display_mode = EXCLUDED.display_mode
                RETURNING {_GUILD_COLUMNS}
                """,
                guild_id,
                int(mode),
            )
        _guild_cache.invalidate(f"guild:{guild_id}")
        return GuildSettings(**dict(row))

    async def delete(self, guild_id: int) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("DELETE FROM queue_guilds WHERE guild_id = $1", guild_id)
        _guild_cache.invalidate(f"guild:{guild_id}")
