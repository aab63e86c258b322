"""Repository for queue_members table.

Ordering contract: ``priority DESC, order_key ASC, joined_at ASC``. Every method that removes
rows does it in one statement (or one transaction) so a pull or shuffle is all-or-nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime

import asyncpg

from ..models.member import MemberEntry, MemberState

logger = logging.getLogger(__name__)

_COLUMNS = "queue_channel_id, member_id, order_key, joined_at, priority, state, disconnected_at"
_ORDER_BY = "ORDER BY priority DESC, order_key ASC, joined_at ASC"


def _entry(row: asyncpg.Record) -> MemberEntry:
    return MemberEntry(**dict(row))


class MemberRepository:
    """Pure SQL operations for queue_members."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def add(self, queue_id: int, member_id: int, *, priority: bool = False) -> MemberEntry:
        """Append a member at the tail. Raises UniqueViolationError on duplicate."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO queue_members (queue_channel_id, member_id, order_key, priority)
                SELECT $1, $2, COALESCE(MAX(order_key), 0) + 1, $3
                FROM queue_members WHERE queue_channel_id = $1
                RETURNING {_COLUMNS}
                """,
                queue_id,
                member_id,
                priority,
            )
            return _entry(row)

    async def get(self, queue_id: int, member_id: int) -> MemberEntry | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM queue_members "
                "WHERE queue_channel_id = $1 AND member_id = $2",
                queue_id,
                member_id,
            )
            return _entry(row) if row else None

    async def list_ordered(self, queue_id: int) -> list[MemberEntry]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM queue_members WHERE queue_channel_id = $1 {_ORDER_BY}",
                queue_id,
            )
            return [_entry(row) for row in rows]

    async def count(self, queue_id: int) -> int:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM queue_members WHERE queue_channel_id = $1", queue_id
            )

    async def delete(self, queue_id: int, member_ids: list[int]) -> list[MemberEntry]:
        """Delete the given members in one statement. Returns the deleted rows in queue order."""
        if not member_ids:
            return []
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"DELETE FROM queue_members "
                f"WHERE queue_channel_id = $1 AND member_id = ANY($2::bigint[]) "
                f"RETURNING {_COLUMNS}",
                queue_id,
                member_ids,
            )
        return sorted((_entry(row) for row in rows), key=lambda e: e.sort_key)

    async def clear(self, queue_id: int) -> list[MemberEntry]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"DELETE FROM queue_members WHERE queue_channel_id = $1 RETURNING {_COLUMNS}",
                queue_id,
            )
        return sorted((_entry(row) for row in rows), key=lambda e: e.sort_key)

    async def restore(self, entries: list[MemberEntry]) -> None:
        """Re-insert previously deleted rows with their original keys (rollback of a pull)."""
        if not entries:
            return
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(
                    """
                    INSERT INTO queue_members
                        (queue_channel_id, member_id, order_key, joined_at, priority,
                         state, disconnected_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    ON CONFLICT (queue_channel_id, member_id) DO NOTHING
                    """,
                    [
                        (
                            e.queue_channel_id,
                            e.member_id,
                            e.order_key,
                            e.joined_at,
                            e.priority,
                            e.state.value,
                            e.disconnected_at,
                        )
                        for e in entries
                    ],
                )

    async def reorder(self, queue_id: int, member_ids: list[int]) -> None:
        """Assign order keys 1..n following ``member_ids``, atomically."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE queue_members AS m
                SET order_key = v.position
                FROM unnest($2::bigint[]) WITH ORDINALITY AS v(member_id, position)
                WHERE m.queue_channel_id = $1 AND m.member_id = v.member_id
                """,
                queue_id,
                member_ids,
            )

    async def set_state(
        self,
        queue_id: int,
        member_id: int,
        state: MemberState,
        disconnected_at: datetime | None = None,
    ) -> bool:
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "UPDATE queue_members SET state = $3, disconnected_at = $4 "
                "WHERE queue_channel_id = $1 AND member_id = $2",
                queue_id,
                member_id,
                state.value,
                disconnected_at,
            )
            return result == "UPDATE 1"

    async def list_in_grace(self) -> list[MemberEntry]:
        """Every member in GRACE across all queues (startup reconciliation)."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM queue_members WHERE state = $1", MemberState.GRACE.value
            )
            return [_entry(row) for row in rows]
