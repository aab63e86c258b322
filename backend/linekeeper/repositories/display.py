"""Repository for display_targets table."""

from __future__ import annotations

import logging

import asyncpg

from ..models.display import DisplayTarget

logger = logging.getLogger(__name__)

_COLUMNS = "id, queue_channel_id, display_channel_id, message_id, content_hash, created_at"


class DisplayTargetRepository:
    """Pure SQL operations for display_targets."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def list_for_queue(self, queue_id: int) -> list[DisplayTarget]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM display_targets WHERE queue_channel_id = $1 ORDER BY id",
                queue_id,
            )
            return [DisplayTarget(**dict(row)) for row in rows]

    async def get_for_channel(
        self, queue_id: int, display_channel_id: int
    ) -> DisplayTarget | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM display_targets "
                "WHERE queue_channel_id = $1 AND display_channel_id = $2",
                queue_id,
                display_channel_id,
            )
            return DisplayTarget(**dict(row)) if row else None

    async def upsert(
        self, queue_id: int, display_channel_id: int, message_id: int, content_hash: str | None
    ) -> DisplayTarget:
        """Bind (or rebind) the display of ``queue_id`` in ``display_channel_id``."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO display_targets
                    (queue_channel_id, display_channel_id, message_id, content_hash)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (queue_channel_id, display_channel_id) DO UPDATE SET
                    message_id = EXCLUDED.message_id,
                    content_hash = EXCLUDED.content_hash
                RETURNING {_COLUMNS}
                """,
                queue_id,
                display_channel_id,
                message_id,
                content_hash,
            )
            return DisplayTarget(**dict(row))

    async def set_rendered(self, target_id: int, message_id: int, content_hash: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                "UPDATE display_targets SET message_id = $2, content_hash = $3 WHERE id = $1",
                target_id,
                message_id,
                content_hash,
            )

    async def delete(self, target_id: int) -> bool:
        async with self.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM display_targets WHERE id = $1", target_id)
            return result == "DELETE 1"

    async def delete_for_queue(self, queue_id: int) -> int:
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM display_targets WHERE queue_channel_id = $1", queue_id
            )
            return int(result.split()[-1])
