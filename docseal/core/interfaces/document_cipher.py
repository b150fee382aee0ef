"""
Contract: Document Cipher

Symmetric envelope encryption applied to document bytes before they
leave for the archive.
"""

from abc import ABC, abstractmethod


class IDocumentCipher(ABC):
    """Port: Document Cipher"""

    algorithm: str = ""

    @abstractmethod
    def encrypt(self, plaintext: bytes, associated_data: str | None = None) -> bytes:
        """
        Args:
            plaintext: Raw document bytes.
            associated_data: Authenticated but unencrypted context (document id).

        Returns:
            Self-contained envelope (nonce + ciphertext).
        """
        ...

    @abstractmethod
    def decrypt(self, envelope: bytes, associated_data: str | None = None) -> bytes:
        ...
