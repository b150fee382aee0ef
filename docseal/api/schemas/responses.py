"""
Pydantic schemas: Response models for the API.
"""

from datetime import datetime

from pydantic import BaseModel

from docseal.core.entities.audit_entry import AuditLogEntry
from docseal.core.entities.decision import Decision, Remediation
from docseal.core.entities.document import Document
from docseal.core.entities.forensic_report import ForensicReport
from docseal.core.entities.permission import Permission
from docseal.core.entities.submission_result import IssuanceResult
from docseal.core.use_cases.analyze_batch import BatchProgress


class RemediationResponse(BaseModel):
    score: int
    minimum_score: int
    approval_score: int
    tampering_detected: bool
    reasons: list[str]

    @classmethod
    def from_entity(cls, r: Remediation) -> "RemediationResponse":
        return cls(
            score=r.score,
            minimum_score=r.minimum_score,
            approval_score=r.approval_score,
            tampering_detected=r.tampering_detected,
            reasons=list(r.reasons),
        )


class DecisionResponse(BaseModel):
    state: str
    reason: str
    decided_at: datetime
    reviewer_id: str | None = None
    comments: str | None = None
    forced_by_biometric_match: bool = False
    remediation: RemediationResponse | None = None

    @classmethod
    def from_entity(cls, d: Decision) -> "DecisionResponse":
        return cls(
            state=d.state.value,
            reason=d.reason,
            decided_at=d.decided_at,
            reviewer_id=d.reviewer_id,
            comments=d.comments,
            forced_by_biometric_match=d.forced_by_biometric_match,
            remediation=RemediationResponse.from_entity(d.remediation) if d.remediation else None,
        )


class IssuanceResponse(BaseModel):
    issued: bool
    issuance_pending: bool
    forensic_complete: bool = True
    failed_stage: str | None = None
    error: str | None = None
    attestation_ref: str | None = None
    token_ref: str | None = None
    ledger_confirmed: bool = False
    archive_locator: str | None = None
    stages_run: list[str] = []

    @classmethod
    def from_entity(cls, r: IssuanceResult) -> "IssuanceResponse":
        return cls(
            issued=r.issued,
            issuance_pending=r.issuance_pending,
            forensic_complete=r.forensic_complete,
            failed_stage=r.failed_stage.value if r.failed_stage else None,
            error=r.error,
            attestation_ref=r.attestation_ref,
            token_ref=r.token_ref,
            ledger_confirmed=r.ledger_confirmed,
            archive_locator=r.archive_locator,
            stages_run=list(r.stages_run),
        )


class DocumentResponse(BaseModel):
    id: str
    owner_id: str
    document_type: str
    category: str
    title: str
    status: str
    decision: str
    decision_reason: str
    overall_score: int | None = None
    content_fingerprint: str
    attestation_ref: str | None = None
    token_ref: str | None = None
    ledger_confirmed: bool = False
    archive_locator: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, d: Document) -> "DocumentResponse":
        return cls(
            id=d.id,
            owner_id=d.owner_id,
            document_type=d.document_class.value,
            category=d.category.value,
            title=d.title,
            status=d.lifecycle_status.value,
            decision=d.decision_state.value,
            decision_reason=d.decision_reason,
            overall_score=d.overall_score,
            content_fingerprint=d.content_fingerprint,
            attestation_ref=d.attestation_ref,
            token_ref=d.token_ref,
            ledger_confirmed=d.ledger_confirmed,
            archive_locator=d.archive_locator,
            version=d.version,
            created_at=d.created_at,
            updated_at=d.updated_at,
        )


class FindingsResponse(BaseModel):
    strengths: list[str]
    weaknesses: list[str]
    anomalies: list[str]
    recommendations: list[str]


class ForensicReportResponse(BaseModel):
    fingerprint: str
    version: int
    integrity_score: float
    authenticity_score: float
    metadata_score: float
    ocr_score: float
    biometric_score: float
    security_score: float
    overall_score: int
    tampering_detected: bool
    tamper_risk: str
    recommended_action: str
    threshold_met: bool
    partial_failures: list[str]
    findings: FindingsResponse
    extracted_text: str = ""
    created_at: datetime

    @classmethod
    def from_entity(cls, r: ForensicReport) -> "ForensicReportResponse":
        return cls(
            fingerprint=r.fingerprint,
            version=r.version,
            integrity_score=r.integrity_score,
            authenticity_score=r.authenticity_score,
            metadata_score=r.metadata_score,
            ocr_score=r.ocr_score,
            biometric_score=r.biometric_score,
            security_score=r.security_score,
            overall_score=r.overall_score,
            tampering_detected=r.tampering_detected,
            tamper_risk=r.tamper_risk.value,
            recommended_action=r.recommended_action.value,
            threshold_met=r.threshold_met,
            partial_failures=list(r.partial_failures),
            findings=FindingsResponse(
                strengths=list(r.findings.strengths),
                weaknesses=list(r.findings.weaknesses),
                anomalies=list(r.findings.anomalies),
                recommendations=list(r.findings.recommendations),
            ),
            extracted_text=r.extracted_text,
            created_at=r.created_at,
        )


class SubmissionResponse(BaseModel):
    document_id: str
    status: str
    decision: str
    overall_score: int | None = None
    deduplicated: bool = False
    cache_hit: bool = False
    decision_detail: DecisionResponse | None = None
    remediation: RemediationResponse | None = None
    issuance: IssuanceResponse | None = None
    pipeline_version: str = ""
    total_latency_ms: float = 0.0
    stage_latencies: dict = {}


class ReviewResponse(BaseModel):
    document: DocumentResponse
    decision: DecisionResponse
    issuance: IssuanceResponse | None = None


class BatchReviewItemResponse(BaseModel):
    document_id: str
    status: str | None = None
    error: str | None = None


class BatchReviewResponse(BaseModel):
    total: int
    processed: int
    failed: int
    results: list[BatchReviewItemResponse]


class OwnershipResponse(BaseModel):
    document_id: str
    owner_id: str
    ledger_ref: str
    owned: bool


class PermissionResponse(BaseModel):
    id: str
    document_id: str
    owner_id: str
    grantee_id: str
    access_type: str
    expires_at: datetime | None = None
    is_active: bool
    created_at: datetime
    revoked_at: datetime | None = None

    @classmethod
    def from_entity(cls, p: Permission) -> "PermissionResponse":
        return cls(
            id=p.id,
            document_id=p.document_id,
            owner_id=p.owner_id,
            grantee_id=p.grantee_id,
            access_type=p.access_type.value,
            expires_at=p.expires_at,
            is_active=p.is_active,
            created_at=p.created_at,
            revoked_at=p.revoked_at,
        )


class AccessCheckResponse(BaseModel):
    document_id: str
    grantee_id: str
    access_type: str
    granted: bool


class CountResponse(BaseModel):
    count: int


class AuditEntryResponse(BaseModel):
    id: str
    action: str
    actor_id: str | None = None
    from_state: str | None = None
    to_state: str | None = None
    details: dict = {}
    created_at: datetime

    @classmethod
    def from_entity(cls, e: AuditLogEntry) -> "AuditEntryResponse":
        return cls(
            id=e.id,
            action=e.action.value,
            actor_id=e.actor_id,
            from_state=e.from_state,
            to_state=e.to_state,
            details=e.details,
            created_at=e.created_at,
        )


class BatchItemResponse(BaseModel):
    index: int
    title: str
    status: str
    document_id: str | None = None
    decision: str | None = None
    overall_score: int | None = None
    error: str | None = None


class BatchResponse(BaseModel):
    batch_id: str
    state: str
    total: int
    completed: int
    failed: int
    percent: float
    items: list[BatchItemResponse]
    created_at: datetime
    finished_at: datetime | None = None

    @classmethod
    def from_progress(cls, p: BatchProgress) -> "BatchResponse":
        items = []
        for item in p.items:
            document = item.result.document if item.result else None
            items.append(BatchItemResponse(
                index=item.index,
                title=item.title,
                status=item.status.value,
                document_id=document.id if document else None,
                decision=document.decision_state.value if document else None,
                overall_score=document.overall_score if document else None,
                error=item.error,
            ))
        return cls(
            batch_id=p.batch_id,
            state=p.state.value,
            total=p.total,
            completed=p.completed,
            failed=p.failed,
            percent=p.percent,
            items=items,
            created_at=p.created_at,
            finished_at=p.finished_at,
        )
