"""
Forensic Cache: fingerprint → ForensicReport.

Wraps an ICacheStore and adds single-flight semantics: at most one
analysis per fingerprint is in progress at any time; concurrent
submissions of the same bytes await the first one's result.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable

from docseal.core.entities.forensic_report import ForensicReport
from docseal.core.interfaces.cache_store import ICacheStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "forensic:"


class ForensicCache:
    """Report cache with in-flight deduplication."""

    def __init__(self, store: ICacheStore, ttl_seconds: int = 3600):
        self._store = store
        self._ttl = ttl_seconds
        self._inflight: dict[str, asyncio.Future] = {}
        self._hits = 0
        self._misses = 0
        self._coalesced = 0

    @staticmethod
    def _key(fingerprint: str) -> str:
        return f"{KEY_PREFIX}{fingerprint}"

    async def get(self, fingerprint: str) -> ForensicReport | None:
        report = await self._store.get(self._key(fingerprint))
        if report is None:
            self._misses += 1
        else:
            self._hits += 1
        return report

    async def put(self, fingerprint: str, report: ForensicReport) -> None:
        await self._store.set(self._key(fingerprint), report, ttl=self._ttl)

    async def invalidate(self, fingerprint: str) -> bool:
        return await self._store.delete(self._key(fingerprint))

    async def get_or_compute(
        self,
        fingerprint: str,
        compute: Callable[[], Awaitable[ForensicReport]],
    ) -> tuple[ForensicReport, bool]:
        """
        Return the cached report or run `compute` exactly once.

        Returns:
            (report, reused); reused is True on a cache hit or when the
            result came from another caller's in-flight analysis.
        """
        pending = self._inflight.get(fingerprint)
        if pending is not None:
            return await self._join(fingerprint, pending), True

        cached = await self.get(fingerprint)
        if cached is not None:
            logger.debug(f"Forensic cache hit {fingerprint[:12]}")
            return cached, True

        # Someone may have started while we were reading the store.
        pending = self._inflight.get(fingerprint)
        if pending is not None:
            return await self._join(fingerprint, pending), True

        future = asyncio.get_running_loop().create_future()
        self._inflight[fingerprint] = future
        try:
            report = await compute()
            await self.put(fingerprint, report)
            future.set_result(report)
            return report, False
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            future.exception()  # mark retrieved when nobody is waiting
            raise
        finally:
            self._inflight.pop(fingerprint, None)

    async def _join(self, fingerprint: str, pending: asyncio.Future) -> ForensicReport:
        self._coalesced += 1
        logger.info(f"Joining in-flight analysis for {fingerprint[:12]}")
        # shield: a cancelled waiter must not cancel the shared analysis
        return await asyncio.shield(pending)

    def in_flight(self) -> int:
        return len(self._inflight)

    async def clear(self, older_than: datetime | None = None) -> int:
        return await self._store.clear(older_than)

    async def stats(self) -> dict:
        lookups = self._hits + self._misses
        stats = await self._store.stats()
        stats.update({
            "hits": self._hits,
            "misses": self._misses,
            "coalesced": self._coalesced,
            "in_flight": len(self._inflight),
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
            "ttl_seconds": self._ttl,
        })
        return stats
