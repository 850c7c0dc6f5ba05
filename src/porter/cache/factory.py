"""
porter.cache.factory - Cache Backend Factory
==============================================

Maps a configuration tag to a concrete CacheManager. Backend selection is
a pure function of the tag (plus the CacheConfig it reads sizes and paths
from):

    "memory"      → MemoryCache(max_size)
    "persistent"  → PersistentCache(path, prefix)
    "none"        → NoCache()

Usage:
    >>> from porter.cache import create_cache
    >>> cache = create_cache("memory", CacheConfig(max_size=50))
    >>> type(cache)  # MemoryCache
"""

from __future__ import annotations

from typing import Optional, Union

from porter.cache.base import CacheManager
from porter.cache.memory import MemoryCache
from porter.cache.noop import NoCache
from porter.cache.persistent import PersistentCache
from porter.core.config import CacheConfig
from porter.core.enums import CacheStrategy
from porter.core.exceptions import ConfigurationError


def create_cache(
    strategy: Union[CacheStrategy, str],
    config: Optional[CacheConfig] = None,
) -> CacheManager:
    """Create a cache backend for ``strategy``.

    Args:
        strategy: A CacheStrategy or its string tag.
        config: Sizes, paths and prefixes; defaults to CacheConfig().

    Returns:
        A ready-to-use CacheManager.

    Raises:
        ConfigurationError: If the tag names no known backend.
    """
    config = config or CacheConfig()
    try:
        tag = CacheStrategy(strategy)
    except ValueError:
        raise ConfigurationError(
            message=f"Unknown cache strategy: {strategy!r}",
            error_code="UNKNOWN_CACHE_STRATEGY",
            details={
                "strategy": str(strategy),
                "available": [member.value for member in CacheStrategy],
            },
        ) from None

    if tag is CacheStrategy.MEMORY:
        return MemoryCache(config.max_size)
    if tag is CacheStrategy.PERSISTENT:
        return PersistentCache(config.path, config.prefix)
    return NoCache()
