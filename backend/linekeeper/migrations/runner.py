"""Bootstrap runner: applies versioned SQL files once, tracked in a bookkeeping table."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"


class MigrationRunner:
    """Apply ``versions/NNN_name.sql`` files in filename order.

    Every file is written with ``IF NOT EXISTS`` guards, so running against a database that was
    created by hand is harmless. Applied versions are recorded in ``schema_migrations``.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, versions_dir: Path | None = None) -> None:
        self.pool = pool
        self.versions_dir = versions_dir or VERSIONS_DIR

    async def ensure_table(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )

    async def applied_versions(self) -> set[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
            return {row["version"] for row in rows}

    def pending(self, applied: set[str]) -> list[Path]:
        return [p for p in sorted(self.versions_dir.glob("*.sql")) if p.stem not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every pending file. Returns the versions applied by this call."""
        await self.ensure_table()
        to_apply = self.pending(await self.applied_versions())
        for sql_path in to_apply:
            await self._apply_one(sql_path.stem, sql_path.read_text(encoding="utf-8"))

        if to_apply:
            logger.info(f"Applied {len(to_apply)} migration(s): {', '.join(p.stem for p in to_apply)}")
        else:
            logger.info("Database schema is up to date")
        return [p.stem for p in to_apply]

    async def _apply_one(self, version: str, sql: str) -> None:
        logger.info(f"Applying migration: {version}")
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    f"INSERT INTO {self.TRACKING_TABLE} (version) VALUES ($1)",  # noqa: S608
                    version,
                )
