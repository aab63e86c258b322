"""Settings cache with stale fallback."""

import asyncio

import pytest

from linekeeper.cache import MISSING, AsyncTTLCache, cached


class Source:
    def __init__(self):
        self.calls = 0
        self.failing = False

    async def read(self, key):
        self.calls += 1
        if self.failing:
            raise ConnectionError("database unreachable")
        return f"value-{key}"


@pytest.fixture
def source():
    return Source()


@pytest.fixture
def cache():
    return AsyncTTLCache(maxsize=8, ttl=60)


class TestCached:
    async def test_second_read_is_served_from_cache(self, cache, source):
        read = cached(cache, lambda key: f"k:{key}", retry=1)(source.read)

        assert await read(1) == "value-1"
        assert await read(1) == "value-1"
        assert source.calls == 1

    async def test_stale_copy_served_when_the_source_fails(self, cache, source):
        read = cached(cache, lambda key: f"k:{key}", retry=1)(source.read)
        await read(1)

        cache._fresh.clear()  # expire
        source.failing = True

        assert await read(1) == "value-1"

    async def test_invalidate_drops_the_stale_copy_too(self, cache, source):
        read = cached(cache, lambda key: f"k:{key}", retry=1)(source.read)
        await read(1)

        cache.invalidate("k:1")
        source.failing = True

        with pytest.raises(ConnectionError):
            await read(1)

    async def test_cached_none_is_a_hit(self, cache):
        calls = []

        async def read(key):
            calls.append(key)
            return None

        wrapped = cached(cache, lambda key: f"k:{key}", retry=1)(read)
        assert await wrapped(1) is None
        assert await wrapped(1) is None
        assert calls == [1]

    def test_get_missing(self, cache):
        assert cache.get("nope") is MISSING
        assert cache.get_stale("nope") is MISSING

    async def test_read_overtaken_by_invalidate_is_not_stored(self, cache):
        release = asyncio.Event()

        async def slow_read(key):
            await release.wait()
            return "before-write"

        read = cached(cache, lambda key: f"k:{key}", retry=1)(slow_read)
        pending = asyncio.create_task(read(1))
        await asyncio.sleep(0)

        cache.invalidate("k:1")
        release.set()

        assert await pending == "before-write"
        assert cache.get("k:1") is MISSING

    def test_version_moves_on_invalidate_and_clear(self, cache):
        start = cache.version("k:1")
        cache.invalidate("k:1")
        after_invalidate = cache.version("k:1")
        cache.clear()

        assert len({start, after_invalidate, cache.version("k:1")}) == 3
