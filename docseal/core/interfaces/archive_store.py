"""
Contract: Archive Store

Permanent storage for encrypted document copies:
write once, read by locator, never delete.
"""

from abc import ABC, abstractmethod


class IArchiveStore(ABC):
    """
    Port: Archive Store

    Implementation can be an Arweave gateway, S3 with object lock,
    a local filesystem, etc.
    """

    @abstractmethod
    async def put(self, encrypted_bytes: bytes, tags: dict[str, str]) -> str:
        """
        Archive a blob permanently.

        Args:
            encrypted_bytes: Ciphertext to store.
            tags: Provenance tags (Document-ID, Document-Type, ...).

        Returns:
            Locator string for later retrieval.
        """
        ...

    @abstractmethod
    async def get(self, locator: str) -> bytes:
        """
        Fetch an archived blob.

        Args:
            locator: Value returned by `put`.

        Returns:
            The stored ciphertext.
        """
        ...
