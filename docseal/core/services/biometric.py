"""
Biometric deduplication.

Hashes the face descriptor produced by the analysis engine and looks
for the same hash on a document owned by someone else. One face,
two citizens is a fraud signal.
"""

import hashlib
import json
import logging

from docseal.core.entities.decision import BiometricMatch
from docseal.core.entities.forensic_report import ForensicReport
from docseal.core.interfaces.repositories import IDocumentRepository

logger = logging.getLogger(__name__)


class BiometricDeduplicator:
    """Derives biometric hashes and finds cross-owner matches."""

    def __init__(self, documents: IDocumentRepository):
        self._documents = documents

    @staticmethod
    def signature_hash(report: ForensicReport) -> str | None:
        """SHA-256 of the face descriptor, or None when no face was detected."""
        signature = report.biometric_signature
        if not signature or not signature.get("has_face_image"):
            return None
        payload = json.dumps(
            {
                "face_confidence": signature.get("face_confidence"),
                "quality": signature.get("face_quality"),
                "features": signature.get("facial_features") or {},
            },
            sort_keys=True,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def find_match(self, owner_id: str, report: ForensicReport) -> tuple[str | None, BiometricMatch | None]:
        """
        Returns:
            (biometric_hash, match); match is None when the face is new
            or only known under `owner_id`.
        """
        biometric_hash = self.signature_hash(report)
        if biometric_hash is None:
            return None, None

        other = self._documents.find_by_biometric_hash(biometric_hash, exclude_owner_id=owner_id)
        if other is None:
            return biometric_hash, None

        confidence = float((report.biometric_signature or {}).get("face_confidence") or 0.0)
        logger.warning(
            f"Biometric hash {biometric_hash[:12]} already registered to owner "
            f"{other.owner_id} (document {other.id}), confidence={confidence:.2f}"
        )
        return biometric_hash, BiometricMatch(
            other_owner_id=other.owner_id,
            other_document_id=other.id,
            confidence=confidence,
        )
