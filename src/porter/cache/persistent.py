"""
porter.cache.persistent - SQLite-Backed Persistent Cache
==========================================================

A cache that survives process restarts. Each entry is stored as a JSON
document ``{"value": ..., "expires": ...}`` under a namespaced key
(``porter:`` by default) in a single SQLite table:

    porter_cache(key TEXT PRIMARY KEY, item TEXT NOT NULL)

Values must be JSON-serializable. Anything else (a loaded module object,
for instance) makes ``set`` raise CacheError, which the Navigator treats
as a no-op.

SQLite calls run in a worker thread (``asyncio.to_thread``) with a fresh
connection per operation, so the event loop never blocks on disk I/O.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import time
from contextlib import closing
from typing import Any, Callable, Optional

import structlog

from porter.cache.base import CacheManager, expiry_for, is_expired
from porter.core.exceptions import CacheError


logger = structlog.get_logger()

_TABLE = "porter_cache"


class PersistentCache(CacheManager):
    """Persistent key/value cache stored in a SQLite file.

    Attributes:
        path: SQLite database file (":memory:" is rejected: it would not persist).
        prefix: Namespace prefix applied to every key.

    Example:
        >>> cache = PersistentCache("/tmp/porter.sqlite3")
        >>> await cache.set("inventory:ui-kit", {"checksum": "abc"}, ttl=60)
        >>> await cache.get("inventory:ui-kit")
        {'checksum': 'abc'}
    """

    def __init__(
        self,
        path: str,
        prefix: str = "porter:",
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if path == ":memory:":
            raise CacheError("create", "persistent cache needs a file path")
        self._path = path
        self._prefix = prefix if prefix.endswith(":") else f"{prefix}:"
        self._clock = clock
        self._logger = logger.bind(component="persistent_cache", path=path)

    @property
    def prefix(self) -> str:
        return self._prefix

    # -------------------------------------------------------------------------
    # CacheManager contract
    # -------------------------------------------------------------------------
    async def get(self, key: str) -> Optional[Any]:
        item = await self._run("get", self._read, key)
        if item is None:
            return None
        if is_expired(item["expires"], self._clock()):
            await self._run("delete", self._remove, key)
            return None
        return item["value"]

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        try:
            payload = json.dumps(
                {"value": value, "expires": expiry_for(ttl, self._clock())}
            )
        except (TypeError, ValueError) as exc:
            raise CacheError("set", f"value is not JSON-serializable: {exc}") from exc
        await self._run("set", self._write, key, payload)

    async def has(self, key: str) -> bool:
        return await self.get(key) is not None

    async def delete(self, key: str) -> None:
        await self._run("delete", self._remove, key)

    async def clear(self) -> None:
        await self._run("clear", self._remove_all)

    async def size(self) -> int:
        return len(await self.keys())

    async def keys(self) -> list[str]:
        """All stored keys, without the namespace prefix."""
        return await self._run("keys", self._list_keys)

    # -------------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # -------------------------------------------------------------------------
    async def _run(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            raise CacheError(operation, f"storage unavailable: {exc}") from exc

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path)
        conn.execute(
            f"CREATE TABLE IF NOT EXISTS {_TABLE} "
            "(key TEXT PRIMARY KEY, item TEXT NOT NULL)"
        )
        return conn

    def _read(self, key: str) -> Optional[dict[str, Any]]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                f"SELECT item FROM {_TABLE} WHERE key = ?", (self._prefix + key,)
            ).fetchone()
        if row is None:
            return None
        try:
            item = json.loads(row[0])
        except json.JSONDecodeError:
            self._logger.warning("cache_entry_corrupt", key=key)
            return None
        if not isinstance(item, dict) or "value" not in item:
            return None
        item.setdefault("expires", 0)
        return item

    def _write(self, key: str, payload: str) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {_TABLE} (key, item) VALUES (?, ?)",
                (self._prefix + key, payload),
            )

    def _remove(self, key: str) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(f"DELETE FROM {_TABLE} WHERE key = ?", (self._prefix + key,))

    def _remove_all(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                f"DELETE FROM {_TABLE} WHERE substr(key, 1, ?) = ?",
                (len(self._prefix), self._prefix),
            )

    def _list_keys(self) -> list[str]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"SELECT key FROM {_TABLE} WHERE substr(key, 1, ?) = ?",
                (len(self._prefix), self._prefix),
            ).fetchall()
        return [row[0][len(self._prefix):] for row in rows]
