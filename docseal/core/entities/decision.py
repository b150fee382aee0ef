"""
Entity: Decision

Output of the DecisionEngine for one document.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class DecisionState(str, Enum):
    PENDING = "PENDING"
    ANALYZING = "ANALYZING"
    APPROVED = "APPROVED"
    UNDER_REVIEW = "UNDER_REVIEW"
    REJECTED = "REJECTED"


class ReviewAction(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


@dataclass(frozen=True)
class BiometricMatch:
    """A face already registered under another owner."""
    other_owner_id: str
    other_document_id: str
    confidence: float


@dataclass(frozen=True)
class Remediation:
    """Guidance returned with a rejected document."""
    score: int
    minimum_score: int          # below this the document is rejected
    approval_score: int         # at or above this it is approved
    tampering_detected: bool
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class Decision:
    """Decision for one document."""
    state: DecisionState
    reason: str = ""
    decided_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reviewer_id: str | None = None
    comments: str | None = None
    forced_by_biometric_match: bool = False
    remediation: Remediation | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (DecisionState.APPROVED, DecisionState.REJECTED)
