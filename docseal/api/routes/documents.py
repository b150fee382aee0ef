"""
Routes: documents, review queue, issuance, batches, audit.
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile

from docseal.api.dependencies import (
    REVIEWER_ROLES,
    Container,
    Principal,
    current_user,
    get_container,
    require_reviewer,
)
from docseal.api.schemas.requests import BatchReviewRequest, ReviewRequest
from docseal.api.schemas.responses import (
    AuditEntryResponse,
    BatchResponse,
    BatchReviewItemResponse,
    BatchReviewResponse,
    DecisionResponse,
    DocumentResponse,
    ForensicReportResponse,
    IssuanceResponse,
    OwnershipResponse,
    RemediationResponse,
    ReviewResponse,
    SubmissionResponse,
)
from docseal.core.entities.document import Document, DocumentClass
from docseal.core.entities.permission import AccessType
from docseal.core.errors import AuthorizationError, NotFoundError, NotOwner, ValidationError
from docseal.core.use_cases.analyze_batch import BatchUpload
from docseal.core.use_cases.review_document import ReviewInput

router = APIRouter()

ACCEPTED_MIME_PREFIXES = ("image/", "application/pdf")


def _document_class(value: str) -> DocumentClass:
    try:
        return DocumentClass(value.upper())
    except ValueError:
        raise ValidationError(
            f"Unknown document_type '{value}'",
            allowed=[c.value for c in DocumentClass],
        ) from None


async def _read_upload(file: UploadFile) -> bytes:
    if not file.content_type or not file.content_type.startswith(ACCEPTED_MIME_PREFIXES):
        raise ValidationError("File must be an image (JPEG/PNG) or a PDF", content_type=file.content_type)
    data = await file.read()
    if len(data) == 0:
        raise ValidationError("Empty file")
    return data


def _load(container: Container, document_id: str) -> Document:
    document = container.documents.get(document_id)
    if document is None:
        raise NotFoundError("Document", document_id)
    return document


def _readable(container: Container, document_id: str, user: Principal, access_type: AccessType) -> Document:
    """Owner, reviewers, and grantees holding `access_type` may read."""
    document = _load(container, document_id)
    if document.owner_id == user.user_id or user.role in REVIEWER_ROLES:
        return document
    if container.permissions.check(document_id, user.user_id, access_type, actor_id=user.user_id):
        return document
    raise AuthorizationError("No access to this document", document_id=document_id)


# ── Submission ──

@router.post("/documents", response_model=SubmissionResponse, status_code=201)
async def submit_document(
    file: UploadFile = File(...),
    document_type: str = Form(...),
    title: str = Form(""),
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    """
    Upload a document and run the forensic pipeline.

    Returns the decision (APPROVED / UNDER_REVIEW / REJECTED), the
    compliance score, remediation guidance on rejection, and the
    issuance outcome on approval.
    """
    image_bytes = await _read_upload(file)
    result = await container.submit.execute(
        image_bytes,
        owner_id=user.user_id,
        document_class=_document_class(document_type),
        title=title or (file.filename or ""),
        mime_type=file.content_type,
    )

    document = result.document
    remediation = result.decision.remediation if result.decision else None
    return SubmissionResponse(
        document_id=document.id,
        status=document.lifecycle_status.value,
        decision=document.decision_state.value,
        overall_score=document.overall_score,
        deduplicated=result.deduplicated,
        cache_hit=result.cache_hit,
        decision_detail=DecisionResponse.from_entity(result.decision) if result.decision else None,
        remediation=RemediationResponse.from_entity(remediation) if remediation else None,
        issuance=IssuanceResponse.from_entity(result.issuance) if result.issuance else None,
        pipeline_version=result.pipeline_version,
        total_latency_ms=result.total_latency_ms,
        stage_latencies=result.stage_latencies,
    )


@router.get("/documents/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    return DocumentResponse.from_entity(_readable(container, document_id, user, AccessType.READ))


@router.get("/documents/{document_id}/forensic", response_model=ForensicReportResponse)
async def get_forensic_report(
    document_id: str,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    document = _readable(container, document_id, user, AccessType.VERIFY)
    report = container.reports.latest(document.content_fingerprint)
    if report is None:
        raise NotFoundError("Forensic report", document_id)
    return ForensicReportResponse.from_entity(report)


@router.get("/documents/{document_id}/audit", response_model=list[AuditEntryResponse])
async def get_audit_history(
    document_id: str,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    document = _load(container, document_id)
    if document.owner_id != user.user_id and user.role not in REVIEWER_ROLES:
        raise NotOwner(document_id, user.user_id)
    return [AuditEntryResponse.from_entity(e) for e in container.audit.history(document_id)]


# ── Review ──

@router.get("/review-queue", response_model=list[DocumentResponse])
async def review_queue(
    limit: int = 50,
    offset: int = 0,
    reviewer: Principal = Depends(require_reviewer),
    container: Container = Depends(get_container),
):
    """Documents parked in UNDER_REVIEW, oldest first."""
    return [DocumentResponse.from_entity(d) for d in container.review.queue(limit=limit, offset=offset)]


@router.post("/documents/{document_id}/review", response_model=ReviewResponse)
async def review_document(
    document_id: str,
    body: ReviewRequest,
    reviewer: Principal = Depends(require_reviewer),
    container: Container = Depends(get_container),
):
    outcome = await container.review.review(document_id, body.action, reviewer.user_id, comments=body.comments)
    return ReviewResponse(
        document=DocumentResponse.from_entity(outcome.document),
        decision=DecisionResponse.from_entity(outcome.decision),
        issuance=IssuanceResponse.from_entity(outcome.issuance) if outcome.issuance else None,
    )


@router.post("/review-queue/batch", response_model=BatchReviewResponse)
async def review_batch(
    body: BatchReviewRequest,
    reviewer: Principal = Depends(require_reviewer),
    container: Container = Depends(get_container),
):
    max_size = container.settings.batch_max_size
    if len(body.actions) > max_size:
        raise ValidationError(f"Maximum {max_size} documents per batch", size=len(body.actions))

    outcomes = await container.review.review_batch(
        [ReviewInput(document_id=a.document_id, action=a.action, comments=a.comments) for a in body.actions],
        reviewer_id=reviewer.user_id,
    )
    results = [
        BatchReviewItemResponse(
            document_id=item.document_id,
            status=outcome.document.lifecycle_status.value if outcome.document else None,
            error=outcome.error.message if outcome.error else None,
        )
        for item, outcome in zip(body.actions, outcomes)
    ]
    failed = sum(1 for r in results if r.error)
    return BatchReviewResponse(total=len(results), processed=len(results) - failed, failed=failed, results=results)


# ── Issuance ──

@router.post("/documents/{document_id}/issuance/retry", response_model=IssuanceResponse)
async def retry_issuance(
    document_id: str,
    file: UploadFile = File(...),
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    """
    Resume a partially issued document. The original file must be sent
    again (it is never stored unencrypted); the ledger step is skipped
    when a ledger reference already exists.
    """
    document = _load(container, document_id)
    if document.owner_id != user.user_id:
        raise NotOwner(document_id, user.user_id)
    image_bytes = await _read_upload(file)
    result = await container.issuance.retry_issuance(document_id, image_bytes, requester_id=user.user_id)
    return IssuanceResponse.from_entity(result)


@router.get("/documents/{document_id}/verify-ownership", response_model=OwnershipResponse)
async def verify_ownership(
    document_id: str,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    document = _readable(container, document_id, user, AccessType.VERIFY)
    owned = await container.issuance.verify_ownership(document_id, document.owner_id)
    return OwnershipResponse(
        document_id=document_id,
        owner_id=document.owner_id,
        ledger_ref=document.ledger_ref,
        owned=owned,
    )


# ── Batches ──

@router.post("/batches", response_model=BatchResponse, status_code=202)
async def start_batch(
    files: list[UploadFile] = File(...),
    document_type: str = Form(...),
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    document_class = _document_class(document_type)
    uploads = [
        BatchUpload(
            image_bytes=await _read_upload(f),
            document_class=document_class,
            title=f.filename or "",
            mime_type=f.content_type,
        )
        for f in files
    ]
    return BatchResponse.from_progress(container.batches.start(user.user_id, uploads))


def _own_batch(container: Container, batch_id: str, user: Principal):
    progress = container.batches.status(batch_id)
    if progress.owner_id != user.user_id:
        raise NotFoundError("Batch", batch_id)
    return progress


@router.get("/batches/{batch_id}", response_model=BatchResponse)
async def batch_status(
    batch_id: str,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    return BatchResponse.from_progress(_own_batch(container, batch_id, user))


@router.post("/batches/{batch_id}/cancel", response_model=BatchResponse)
async def cancel_batch(
    batch_id: str,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    _own_batch(container, batch_id, user)
    return BatchResponse.from_progress(container.batches.cancel(batch_id))
