"""
porter.cache.memory - In-Process Cache
========================================

Fast, volatile cache backed by a Python dict. Dicts preserve insertion
order, so the first key is always the oldest-inserted one:

    set("a") set("b") set("c")   with max_size=3
    set("d")  → evicts "a"       (FIFO, not LRU: reading "a" would not save it)

Re-setting an existing key counts as a fresh insertion and moves it to
the back of the queue.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

import structlog

from porter.cache.base import CacheEntry, CacheManager, expiry_for


logger = structlog.get_logger()


class MemoryCache(CacheManager):
    """Bounded in-memory cache with lazy TTL expiry and FIFO eviction.

    Attributes:
        max_size: Maximum number of entries held at once.

    Example:
        >>> cache = MemoryCache(max_size=2)
        >>> await cache.set("a", 1)
        >>> await cache.set("b", 2)
        >>> await cache.set("c", 3)   # evicts "a"
        >>> await cache.get("a") is None
        True
    """

    def __init__(
        self,
        max_size: int = 1000,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._entries: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._clock = clock
        self._logger = logger.bind(component="memory_cache")

    @property
    def max_size(self) -> int:
        return self._max_size

    # -------------------------------------------------------------------------
    # CacheManager contract
    # -------------------------------------------------------------------------
    async def get(self, key: str) -> Optional[Any]:
        entry = self._live_entry(key)
        return entry.value if entry is not None else None

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self._max_size:
            self._evict_oldest()

        self._entries[key] = CacheEntry(value=value, expires=expiry_for(ttl, self._clock()))

    async def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()

    async def size(self) -> int:
        return len(self._entries)

    # -------------------------------------------------------------------------
    # Extras
    # -------------------------------------------------------------------------
    def stats(self) -> dict[str, Any]:
        """Current size, bound and utilization percentage."""
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "utilization": len(self._entries) / self._max_size * 100,
        }

    def set_max_size(self, max_size: int) -> None:
        """Change the bound, evicting oldest entries until it holds."""
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._max_size = max_size
        while len(self._entries) > self._max_size:
            self._evict_oldest()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------
    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            self._logger.debug("cache_entry_expired", key=key)
            return None
        return entry

    def _evict_oldest(self) -> None:
        oldest = next(iter(self._entries))
        del self._entries[oldest]
        self._logger.debug("cache_entry_evicted", key=oldest, max_size=self._max_size)
