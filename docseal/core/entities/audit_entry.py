"""
Entity: Audit Log Entry

One immutable record per state transition or access decision.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class AuditAction(str, Enum):
    """Auditable actions."""

    # Document lifecycle
    DOCUMENT_SUBMITTED = "document.submitted"
    DOCUMENT_DEDUPLICATED = "document.deduplicated"
    ANALYSIS_STARTED = "analysis.started"
    ANALYSIS_COMPLETED = "analysis.completed"
    DECISION_MADE = "decision.made"
    BIOMETRIC_DUPLICATE_FLAGGED = "decision.biometric_duplicate"
    REVIEW_APPROVED = "review.approved"
    REVIEW_REJECTED = "review.rejected"

    # Issuance
    LEDGER_ATTESTED = "issuance.ledger.attested"
    LEDGER_MINTED = "issuance.ledger.minted"
    LEDGER_FAILED = "issuance.ledger.failed"
    LEDGER_RECEIPT_ORPHANED = "issuance.ledger.orphaned"
    ARCHIVE_STORED = "issuance.archive.stored"
    ARCHIVE_FAILED = "issuance.archive.failed"
    DOCUMENT_ISSUED = "issuance.completed"

    # Access
    PERMISSION_GRANTED = "permission.granted"
    PERMISSION_REVOKED = "permission.revoked"
    PERMISSIONS_EXPIRED = "permission.expired"
    ACCESS_CHECKED = "access.checked"


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only audit record."""
    id: str
    action: AuditAction
    actor_id: str | None = None
    document_id: str | None = None
    from_state: str | None = None
    to_state: str | None = None
    details: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
