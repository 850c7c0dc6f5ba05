"""
porter.cache.noop - Disabled Cache
====================================

Selected with ``strategy: none``. Honors the CacheManager contract while
storing nothing, so the Navigator needs no "is caching on?" branches.
"""

from __future__ import annotations

from typing import Any, Optional

from porter.cache.base import CacheManager


class NoCache(CacheManager):
    """Cache that discards every write and misses every read."""

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        return None

    async def has(self, key: str) -> bool:
        return False

    async def delete(self, key: str) -> None:
        return None

    async def clear(self) -> None:
        return None

    async def size(self) -> int:
        return 0
