"""
Content fingerprinting: SHA-256 of the raw upload bytes.
Used for deduplication and as the forensic cache key.
"""

import hashlib


class ContentFingerprinter:
    """Hashes document bytes."""

    ALGORITHM = "sha256"

    def fingerprint(self, data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()
