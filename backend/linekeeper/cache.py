"""In-process TTL cache for queue settings, with stale fallback.

Queue settings are read on every join, pull and render but change rarely, so reads go through
a cachetools.TTLCache. Writes invalidate the key. When the database is unreachable the last
known value is served instead of failing the whole operation.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes "not cached" from a cached None (queue does not exist)
MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


class AsyncTTLCache:
    """TTL cache with a bounded last-known-good store behind it."""

    def __init__(self, maxsize: int = 256, ttl: float = 120.0):
        self._maxsize = maxsize
        self._fresh: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._stale: OrderedDict[str, Any] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self._versions: dict[str, int] = {}
        self._epoch = 0

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
            if len(self._locks) > self._maxsize * 2:
                for k in [k for k, v in self._locks.items() if not v.locked()]:
                    if k not in self._fresh:
                        del self._locks[k]
        return lock

    def version(self, key: str) -> tuple[int, int]:
        """Changes whenever the key is invalidated or the cache is cleared."""
        return self._epoch, self._versions.get(key, 0)

    def get(self, key: str) -> Any:
        return self._fresh.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        self._fresh[key] = value
        self._stale[key] = value
        self._stale.move_to_end(key)
        while len(self._stale) > self._maxsize:
            self._stale.popitem(last=False)

    def invalidate(self, key: str) -> None:
        """Drop a key everywhere. Unlike expiry, a write means the stale copy is wrong too."""
        self._fresh.pop(key, None)
        self._stale.pop(key, None)
        self._versions[key] = self._versions.get(key, 0) + 1

    def clear(self) -> None:
        self._fresh.clear()
        self._stale.clear()
        self._versions.clear()
        self._epoch += 1

    def get_stale(self, key: str) -> Any:
        return self._stale.get(key, MISSING)

    @property
    def size(self) -> int:
        return len(self._fresh)


def cached(cache: AsyncTTLCache, key_func: Callable[..., str], *, retry: int = 2):
    """Cache an async read. On repeated failure fall back to the stale copy, else re-raise."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            key = key_func(*args, **kwargs)
            result = cache.get(key)
            if result is not MISSING:
                return result

            async with cache.lock_for(key):
                result = cache.get(key)
                if result is not MISSING:
                    return result

                last_exc: BaseException | None = None
                for attempt in range(1, retry + 1):
                    # A write that lands mid-read invalidates the key; the row read may predate it.
                    version = cache.version(key)
                    try:
                        result = await func(*args, **kwargs)
                        if cache.version(key) == version:
                            cache.set(key, result)
                        return result
                    except asyncio.CancelledError:
                        raise
                    except Exception as exc:
                        last_exc = exc
                        if attempt < retry:
                            logger.warning(
                                "Read %d/%d failed for %s: %s, retrying",
                                attempt,
                                retry,
                                key,
                                type(exc).__name__,
                            )
                            await asyncio.sleep(0.5 * attempt)

                stale = cache.get_stale(key)
                if stale is not MISSING:
                    logger.warning("Serving stale value for %s (%s)", key, type(last_exc).__name__)
                    return stale
                raise last_exc  # type: ignore[misc]

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
