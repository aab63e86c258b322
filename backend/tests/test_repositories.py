"""asyncpg repositories against a scripted pool: cache coherence and inserted defaults."""

import asyncio
import re
from contextlib import asynccontextmanager

import pytest

from linekeeper.models.queue import DisplayMode
from linekeeper.repositories import GuildSettingsRepository, QueueRepository


class ScriptedConnection:
    """Answers the handful of statements the settings repositories issue."""

    def __init__(self, pool):
        self.pool = pool

    async def fetchrow(self, query, *args):
        sql = " ".join(query.split())
        if sql.startswith("SELECT"):
            row = dict(self.pool.queues.get(args[0]) or {})
            if self.pool.hold_next_read:
                self.pool.hold_next_read = False
                self.pool.read_started.set()
                await self.pool.gate.wait()
            return row or None
        if sql.startswith("UPDATE queue_channels"):
            names = re.findall(r"(\w+) = \$\d+", sql.split(" WHERE ")[0])
            row = self.pool.queues[args[0]]
            row.update(zip(names, args[1:]))
            return dict(row)
        if sql.startswith("INSERT INTO queue_guilds"):
            self.pool.guild_inserts.append(args)
            return {"guild_id": args[0], "display_mode": args[1], "created_at": None}
        raise AssertionError(f"unexpected query: {sql}")


class ScriptedPool:
    def __init__(self):
        self.queues: dict[int, dict] = {}
        self.guild_inserts: list[tuple] = []
        self.hold_next_read = False
        self.read_started = asyncio.Event()
        self.gate = asyncio.Event()

    @asynccontextmanager
    async def acquire(self):
        yield ScriptedConnection(self)


@pytest.fixture(autouse=True)
def clear_caches():
    QueueRepository.get.cache.clear()
    GuildSettingsRepository.get_or_create.cache.clear()
    yield
    QueueRepository.get.cache.clear()
    GuildSettingsRepository.get_or_create.cache.clear()


@pytest.fixture
def pool():
    pool = ScriptedPool()
    pool.queues[7] = {"queue_channel_id": 7, "guild_id": 1, "is_locked": False}
    return pool


class TestQueueRepositoryCache:
    async def test_reads_are_cached(self, pool):
        repo = QueueRepository(pool)
        await repo.get(7)
        pool.queues[7]["is_locked"] = True

        assert (await repo.get(7)).is_locked is False

    async def test_update_is_visible_to_the_next_read(self, pool):
        repo = QueueRepository(pool)
        await repo.get(7)

        await repo.update(7, is_locked=True)

        assert (await repo.get(7)).is_locked is True

    async def test_read_racing_an_update_does_not_cache_the_old_row(self, pool):
        repo = QueueRepository(pool)
        pool.hold_next_read = True

        slow_read = asyncio.create_task(repo.get(7))
        await pool.read_started.wait()

        # The write commits while the read still holds the pre-update row
        await repo.update(7, is_locked=True)
        pool.gate.set()

        assert (await slow_read).is_locked is False
        assert (await repo.get(7)).is_locked is True

    async def test_clear_also_discards_in_flight_reads(self, pool):
        repo = QueueRepository(pool)
        pool.hold_next_read = True

        slow_read = asyncio.create_task(repo.get(7))
        await pool.read_started.wait()
        QueueRepository.get.cache.clear()
        pool.queues[7]["is_locked"] = True
        pool.gate.set()
        await slow_read

        assert (await repo.get(7)).is_locked is True


class TestGuildSettingsRepository:
    async def test_new_guilds_get_the_configured_display_mode(self, pool):
        repo = GuildSettingsRepository(pool, default_mode=DisplayMode.RESEND)

        settings = await repo.get_or_create(42)

        assert settings.display_mode is DisplayMode.RESEND
        assert pool.guild_inserts == [(42, int(DisplayMode.RESEND))]

    async def test_default_mode_is_edit(self, pool):
        settings = await GuildSettingsRepository(pool).get_or_create(43)

        assert settings.display_mode is DisplayMode.EDIT
