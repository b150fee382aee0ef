"""
In-memory cache store for a single process.

TTL per entry plus a size bound: when full, the least recently used
entry is evicted. Shared across workers only through a networked
backend (Redis or similar) implementing the same ICacheStore port.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Callable

from docseal.core.entities.permission import utcnow
from docseal.core.interfaces.cache_store import ICacheStore

logger = logging.getLogger(__name__)


class InMemoryCacheStore(ICacheStore):
    """Adapter: ICacheStore backed by an OrderedDict."""

    def __init__(
        self,
        default_ttl: int | None = 3600,
        max_entries: int = 1024,
        clock: Callable[[], datetime] = utcnow,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock
        # key -> (value, stored_at, expires_at | None)
        self._entries: OrderedDict[str, tuple[Any, datetime, datetime | None]] = OrderedDict()
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            value, _, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        async with self._lock:
            now = self._clock()
            ttl = self._default_ttl if ttl is None else ttl
            expires_at = now + timedelta(seconds=ttl) if ttl else None

            self._entries[key] = (value, now, expires_at)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Cache full, evicted {evicted}")

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self, older_than: datetime | None = None) -> int:
        async with self._lock:
            if older_than is None:
                count = len(self._entries)
                self._entries.clear()
            else:
                stale = [k for k, (_, stored_at, _) in self._entries.items() if stored_at < older_than]
                for key in stale:
                    del self._entries[key]
                count = len(stale)
            if count:
                logger.info(f"Cleared {count} cache entr{'y' if count == 1 else 'ies'}")
            return count

    async def stats(self) -> dict:
        async with self._lock:
            now = self._clock()
            expired = sum(
                1 for _, _, expires_at in self._entries.values()
                if expires_at is not None and now >= expires_at
            )
            stored = [stored_at for _, stored_at, _ in self._entries.values()]
            return {
                "backend": "memory",
                "entries": len(self._entries),
                "oldest_entry": min(stored).isoformat() if stored else None,
                "newest_entry": max(stored).isoformat() if stored else None,
                "expired_entries": expired,
                "max_entries": self._max_entries,
                "default_ttl_seconds": self._default_ttl,
                "store_hits": self._hits,
                "store_misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
            }
