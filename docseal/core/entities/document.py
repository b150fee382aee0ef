"""
Entity: Document

One uploaded artifact in the domain.
Pure model, no framework or database dependency.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from docseal.core.entities.decision import DecisionState


class DocumentClass(str, Enum):
    # identity facts
    BIRTH_CERTIFICATE = "BIRTH_CERTIFICATE"
    NATIONAL_ID = "NATIONAL_ID"
    PASSPORT = "PASSPORT"
    DRIVERS_LICENSE = "DRIVERS_LICENSE"
    PROFESSIONAL_LICENSE = "PROFESSIONAL_LICENSE"
    ACADEMIC_CERTIFICATE = "ACADEMIC_CERTIFICATE"
    # ownership assets
    LAND_TITLE = "LAND_TITLE"
    PROPERTY_DEED = "PROPERTY_DEED"
    VEHICLE_REGISTRATION = "VEHICLE_REGISTRATION"


class AssetCategory(str, Enum):
    NON_TRANSFERABLE = "NON_TRANSFERABLE"   # attestation
    TRANSFERABLE = "TRANSFERABLE"           # token


class LifecycleStatus(str, Enum):
    PENDING = "PENDING"
    ANALYZING = "ANALYZING"
    VERIFIED = "VERIFIED"
    UNDER_REVIEW = "UNDER_REVIEW"
    ISSUED = "ISSUED"
    REJECTED = "REJECTED"


OWNERSHIP_CLASSES = frozenset({
    DocumentClass.LAND_TITLE,
    DocumentClass.PROPERTY_DEED,
    DocumentClass.VEHICLE_REGISTRATION,
})

# Certificates carry no security print worth a tamper pass.
TAMPER_EXEMPT_CLASSES = frozenset({
    DocumentClass.BIRTH_CERTIFICATE,
    DocumentClass.ACADEMIC_CERTIFICATE,
})

PORTRAIT_CLASSES = frozenset({
    DocumentClass.PASSPORT,
    DocumentClass.NATIONAL_ID,
    DocumentClass.DRIVERS_LICENSE,
})


def classify(document_class: DocumentClass) -> AssetCategory:
    """Identity facts are attested, ownership assets are tokenized."""
    if document_class in OWNERSHIP_CLASSES:
        return AssetCategory.TRANSFERABLE
    return AssetCategory.NON_TRANSFERABLE


@dataclass
class Document:
    """Domain entity: Document."""
    id: str
    owner_id: str
    content_fingerprint: str
    document_class: DocumentClass
    title: str = ""
    mime_type: str = "image/jpeg"
    byte_size: int = 0
    lifecycle_status: LifecycleStatus = LifecycleStatus.PENDING

    # Decision
    decision_state: DecisionState = DecisionState.PENDING
    decision_reason: str = ""
    overall_score: int | None = None
    biometric_hash: str | None = None

    # Issuance linkage
    attestation_ref: str | None = None
    token_ref: str | None = None
    ledger_confirmed: bool = False
    archive_locator: str | None = None

    # Set while one issuance run owns the document
    issuance_claim: str | None = None
    issuance_claimed_at: datetime | None = None

    version: int = 1
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def category(self) -> AssetCategory:
        return classify(self.document_class)

    @property
    def ledger_ref(self) -> str | None:
        return self.attestation_ref or self.token_ref

    @property
    def is_issued(self) -> bool:
        return self.lifecycle_status == LifecycleStatus.ISSUED


def lifecycle_for(decision_state: DecisionState) -> LifecycleStatus:
    """Lifecycle status a document takes when its decision lands in `decision_state`."""
    return _DECISION_TO_LIFECYCLE[decision_state]


_DECISION_TO_LIFECYCLE = {
    DecisionState.PENDING: LifecycleStatus.PENDING,
    DecisionState.ANALYZING: LifecycleStatus.ANALYZING,
    DecisionState.APPROVED: LifecycleStatus.VERIFIED,     # ISSUED only after issuance
    DecisionState.UNDER_REVIEW: LifecycleStatus.UNDER_REVIEW,
    DecisionState.REJECTED: LifecycleStatus.REJECTED,
}
