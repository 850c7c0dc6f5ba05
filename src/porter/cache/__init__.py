"""
porter.cache - Cache Subsystem
================================

Key/value store with per-entry expiry and pluggable backends.

Components:
    - CacheManager (ABC):  The async get/set/has/delete/clear/size contract
    - MemoryCache:         Bounded in-process dict, FIFO eviction
    - PersistentCache:     SQLite file, survives restarts, JSON values
    - NoCache:             Caching disabled
    - create_cache():      Tag → backend factory

Usage:
    from porter.cache import create_cache, MemoryCache
"""

from porter.cache.base import CacheEntry, CacheManager
from porter.cache.factory import create_cache
from porter.cache.memory import MemoryCache
from porter.cache.noop import NoCache
from porter.cache.persistent import PersistentCache

__all__ = [
    "CacheEntry",
    "CacheManager",
    "MemoryCache",
    "PersistentCache",
    "NoCache",
    "create_cache",
]
