"""
Contract: Cache Store

Key/value store with per-entry TTL. Entries may be evicted at any
time; a miss only costs recomputation.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any


class ICacheStore(ABC):
    """
    Port: Cache Store

    In-memory for a single process, Redis (or similar) when several
    workers must share analysis results.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the live value for `key`, or None (missing or expired)."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store `value` for `ttl` seconds (None = store default)."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    async def clear(self, older_than: datetime | None = None) -> int:
        """Drop every entry, or only those stored before `older_than`. Returns count."""
        ...

    @abstractmethod
    async def stats(self) -> dict:
        """Backend statistics (entries, hits, misses, evictions, ...)."""
        ...
