"""
Response cache for upstream league data.

Sleeper responses are reused for a short window so a burst of page loads does
not turn into a burst of API calls. Concurrent misses on the same key share a
single upstream load. Only an in-process backend ships; CacheBackend is the
seam for a shared one.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Optional

from loguru import logger


class CacheBackend(ABC):
    """Storage behind CacheManager. A ttl of zero or less means no expiry."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]: ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def clear_prefix(self, prefix: str) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...


class InMemoryCache(CacheBackend):
    """
    Process-local store with per-entry deadlines and least-recently-used
    eviction once max_size entries are held.
    """

    def __init__(self, max_size: int = 1000, clock: Callable[[], float] = time.monotonic):
        self._entries: "OrderedDict[str, tuple[Any, Optional[float]]]" = OrderedDict()
        self._max_size = max_size
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, deadline: Optional[float]) -> bool:
        return deadline is not None and self._clock() >= deadline

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if self._expired(deadline):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        deadline = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        self._entries[key] = (value, deadline)
        self._entries.move_to_end(key)

        if len(self._entries) > self._max_size:
            self._purge_expired()
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear_prefix(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]

    async def close(self) -> None:
        self._entries.clear()

    def _purge_expired(self) -> None:
        for key in [k for k, (_, deadline) in self._entries.items() if self._expired(deadline)]:
            del self._entries[key]


class CacheManager:
    """
    Namespaced cache with per-data-type TTLs and single-flight loading.

    Backend failures are logged and treated as misses; a broken cache slows
    requests down but never fails them.

    Example:
        >>> cache = CacheManager.create_memory_cache()
        >>> rosters = await cache.get_or_set("sleeper:rosters:123", load_rosters, data_type="rosters")
    """

    # Sleeper data may be up to a minute stale
    DEFAULT_TTLS = {
        "state": 60,
        "league": 60,
        "users": 60,
        "rosters": 60,
        "matchups": 60,
        "default": 60,
    }

    def __init__(self, backend: CacheBackend, key_prefix: str = "tavern"):
        self.backend = backend
        self.key_prefix = key_prefix
        self.hits = 0
        self.misses = 0
        self._loading: dict[str, asyncio.Future] = {}
        self.logger = logger.bind(component="cache")

    @classmethod
    def create_memory_cache(cls, max_size: int = 1000) -> "CacheManager":
        return cls(InMemoryCache(max_size=max_size))

    def _namespaced(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    def ttl_for(self, data_type: str, ttl_seconds: Optional[int] = None) -> int:
        if ttl_seconds is not None:
            return ttl_seconds
        return self.DEFAULT_TTLS.get(data_type, self.DEFAULT_TTLS["default"])

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self.backend.get(self._namespaced(key))
        except Exception as e:
            self.logger.error(f"Cache read failed for {key}: {e}")
            value = None

        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        data_type: str = "default",
    ) -> None:
        ttl = self.ttl_for(data_type, ttl_seconds)
        try:
            await self.backend.set(self._namespaced(key), value, ttl)
        except Exception as e:
            self.logger.error(f"Cache write failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        try:
            await self.backend.delete(self._namespaced(key))
        except Exception as e:
            self.logger.error(f"Cache delete failed for {key}: {e}")

    async def clear_prefix(self, prefix: str) -> None:
        try:
            await self.backend.clear_prefix(self._namespaced(prefix))
        except Exception as e:
            self.logger.error(f"Cache clear failed for {prefix}: {e}")
            return
        self.logger.info(f"Cleared cached {prefix} entries")

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[int] = None,
        data_type: str = "default",
    ) -> Any:
        """
        Return the cached value for key, loading it with factory on a miss.

        While a load is in flight, other callers for the same key await it
        instead of starting their own. None results are not cached, and a
        failed load propagates to every waiter.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        pending = self._loading.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._loading[key] = future
        try:
            value = await factory()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unawaited failure is not reported at GC
            future.exception()
            raise
        finally:
            self._loading.pop(key, None)

        future.set_result(value)
        if value is not None:
            await self.set(key, value, ttl_seconds, data_type)
        return value

    def stats(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / lookups, 3) if lookups else 0.0,
            "in_flight": len(self._loading),
        }

    async def close(self) -> None:
        await self.backend.close()
