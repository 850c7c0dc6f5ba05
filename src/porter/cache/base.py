"""
porter.cache.base - Cache Manager Contract
============================================

Every cache backend implements the same async key/value contract:

    get(key) -> value | None
    set(key, value, ttl=None)
    has(key) -> bool
    delete(key)
    clear()
    size() -> int

Expiry:
    ``ttl`` is in seconds. An entry set with ``ttl > 0`` expires at
    ``now + ttl``; ``ttl`` omitted or 0 means no expiry (stored as
    ``expires == 0``). Expiry is checked lazily on get/has: an expired entry
    is deleted on access and reported as absent. There is no background
    sweep.

Implementations:
    - MemoryCache:      dict-based, bounded, insertion-order (FIFO) eviction
    - PersistentCache:  SQLite-backed, JSON-serialized {value, expires}
    - NoCache:          discards every write, misses every read
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


def expiry_for(ttl: Optional[float], now: Optional[float] = None) -> float:
    """Absolute expiry instant for a TTL, or 0 for "never expires"."""
    if not ttl:
        return 0.0
    return (now if now is not None else time.time()) + ttl


def is_expired(expires: float, now: Optional[float] = None) -> bool:
    """True once an entry with this expiry instant must be treated as absent."""
    return expires > 0 and (now if now is not None else time.time()) > expires


@dataclass
class CacheEntry:
    """Internal cache record: a value and its absolute expiry (0 = none)."""

    value: Any
    expires: float = 0.0

    def expired(self, now: Optional[float] = None) -> bool:
        return is_expired(self.expires, now)


# =============================================================================
# Abstract Base Class: CacheManager
# =============================================================================
class CacheManager(ABC):
    """Abstract base class for cache backends.

    Components should type-hint against this ABC; the Navigator never
    depends on a concrete backend.

    Example:
        >>> async def remember(cache: CacheManager, inventory: dict) -> None:
        ...     await cache.set("inventory:ui-kit", inventory, ttl=3600)
        ...     assert await cache.has("inventory:ui-kit")
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired.

        Raises:
            CacheError: If the backend cannot be read.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl`` seconds.

        Raises:
            CacheError: If the backend cannot be written or the value
                cannot be serialized.
        """

    @abstractmethod
    async def has(self, key: str) -> bool:
        """True if ``key`` is present and not expired."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; removing a missing key is not an error."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry owned by this cache."""

    @abstractmethod
    async def size(self) -> int:
        """Number of stored entries (expired ones not yet accessed included)."""
