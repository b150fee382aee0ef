"""
Adapter: In-memory archive for local development and tests.

Locators are the sha256 of the stored bytes, as content-addressed
permanent stores do.
"""

import hashlib
import logging

from docseal.core.errors import NotFoundError
from docseal.core.interfaces.archive_store import IArchiveStore

logger = logging.getLogger(__name__)


class InMemoryArchiveStore(IArchiveStore):
    """Adapter: IArchiveStore kept in a dict. Write once, never delete."""

    def __init__(self):
        self._blobs: dict[str, bytes] = {}
        self.tags: dict[str, dict[str, str]] = {}

    async def put(self, encrypted_bytes: bytes, tags: dict[str, str]) -> str:
        locator = hashlib.sha256(encrypted_bytes).hexdigest()
        self._blobs.setdefault(locator, encrypted_bytes)
        self.tags.setdefault(locator, dict(tags))
        logger.info(f"[memory-archive] stored {len(encrypted_bytes)} bytes as {locator[:12]}")
        return locator

    async def get(self, locator: str) -> bytes:
        try:
            return self._blobs[locator]
        except KeyError:
            raise NotFoundError("Archive blob", locator) from None
