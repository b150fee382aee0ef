"""
Document encryption: AES-256-GCM.

Envelope layout: nonce (12 bytes) || ciphertext+tag. The document id
is bound as associated data, so a blob cannot be replayed under
another document.
"""

import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from docseal.core.errors import ValidationError
from docseal.core.interfaces.document_cipher import IDocumentCipher

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
KEY_SIZE = 32
ALGORITHM = "AES-256-GCM"


class DocumentCipher(IDocumentCipher):
    """Adapter: IDocumentCipher with AES-256-GCM."""

    algorithm = ALGORITHM

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ValueError(f"{ALGORITHM} needs a {KEY_SIZE}-byte key, got {len(key)}")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_hex(cls, hex_key: str) -> "DocumentCipher":
        """Build from a 64-char hex key; an empty key yields an ephemeral one (dev only)."""
        if not hex_key:
            logger.warning("ARCHIVE_ENCRYPTION_KEY not set, using an ephemeral key; archives will not survive a restart")
            return cls(AESGCM.generate_key(bit_length=256))
        try:
            key = bytes.fromhex(hex_key)
        except ValueError as e:
            raise ValueError("ARCHIVE_ENCRYPTION_KEY must be hex encoded") from e
        return cls(key)

    def encrypt(self, plaintext: bytes, associated_data: str | None = None) -> bytes:
        nonce = secrets.token_bytes(NONCE_SIZE)
        aad = associated_data.encode() if associated_data else None
        return nonce + self._aesgcm.encrypt(nonce, plaintext, aad)

    def decrypt(self, envelope: bytes, associated_data: str | None = None) -> bytes:
        if len(envelope) <= NONCE_SIZE:
            raise ValidationError("Encrypted payload is too short")
        nonce, ciphertext = envelope[:NONCE_SIZE], envelope[NONCE_SIZE:]
        aad = associated_data.encode() if associated_data else None
        try:
            return self._aesgcm.decrypt(nonce, ciphertext, aad)
        except InvalidTag as e:
            raise ValidationError("Encrypted payload failed authentication") from e
