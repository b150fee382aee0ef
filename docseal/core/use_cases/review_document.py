"""
Use Case: Review Document

Human decision on documents parked in UNDER_REVIEW (borderline score
or biometric duplicate). Approval hands the document to issuance;
rejection requires comments and returns remediation guidance.
"""

import logging
from dataclasses import dataclass, replace

from docseal.core.entities.audit_entry import AuditAction
from docseal.core.entities.decision import Decision, DecisionState, ReviewAction
from docseal.core.entities.document import Document, LifecycleStatus, lifecycle_for
from docseal.core.entities.submission_result import IssuanceResult
from docseal.core.errors import DocSealError, NotFoundError
from docseal.core.interfaces.repositories import IDocumentRepository, IForensicReportRepository
from docseal.core.services.audit_trail import AuditTrail
from docseal.core.use_cases.decide import DecisionEngine
from docseal.core.use_cases.issue_document import IssuancePipeline

logger = logging.getLogger(__name__)


@dataclass
class ReviewInput:
    """One reviewer verdict."""
    document_id: str
    action: ReviewAction
    comments: str | None = None


@dataclass
class ReviewOutcome:
    document: Document | None
    decision: Decision | None = None
    issuance: IssuanceResult | None = None
    error: DocSealError | None = None     # batch mode only


class ReviewDocumentUseCase:
    """Use Case: review queue + manual APPROVE / REJECT."""

    def __init__(
        self,
        documents: IDocumentRepository,
        reports: IForensicReportRepository,
        decisions: DecisionEngine,
        audit: AuditTrail,
        issuance: IssuancePipeline | None = None,
    ):
        self._documents = documents
        self._reports = reports
        self._decisions = decisions
        self._audit = audit
        self._issuance = issuance

    def queue(self, limit: int = 50, offset: int = 0) -> list[Document]:
        """Documents waiting for a reviewer, oldest first."""
        return self._documents.list_by_status(LifecycleStatus.UNDER_REVIEW, limit=limit, offset=offset)

    async def review(
        self,
        document_id: str,
        action: ReviewAction,
        reviewer_id: str,
        comments: str | None = None,
        image_bytes: bytes | None = None,
    ) -> ReviewOutcome:
        document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)

        report = self._reports.latest(document.content_fingerprint)
        decision = self._decisions.review(
            document.decision_state,
            action,
            reviewer_id,
            comments=comments,
            report=report,
            document_id=document_id,
        )

        previous = document.lifecycle_status
        lifecycle = lifecycle_for(decision.state)
        document = self._documents.update(replace(
            document,
            decision_state=decision.state,
            decision_reason=decision.reason,
            lifecycle_status=lifecycle,
        ))
        self._audit.record(
            AuditAction.REVIEW_APPROVED if decision.state is DecisionState.APPROVED else AuditAction.REVIEW_REJECTED,
            actor_id=reviewer_id,
            document_id=document_id,
            from_state=previous.value,
            to_state=lifecycle.value,
            details={"comments": comments, "overall_score": document.overall_score},
        )
        logger.info(f"Document {document_id} reviewed by {reviewer_id}: {decision.state.value}")

        outcome = ReviewOutcome(document=document, decision=decision)
        if decision.state is DecisionState.APPROVED and self._issuance is not None:
            outcome.issuance = await self._issuance.issue(
                document, report, image_bytes=image_bytes, actor_id=reviewer_id
            )
            outcome.document = outcome.issuance.document or document
        return outcome

    async def review_batch(self, items: list[ReviewInput], reviewer_id: str) -> list[ReviewOutcome]:
        """Apply several verdicts; one failing item does not stop the rest."""
        outcomes = []
        for item in items:
            try:
                outcomes.append(await self.review(item.document_id, item.action, reviewer_id, item.comments))
            except DocSealError as e:
                logger.warning(f"Batch review of {item.document_id} failed: {e}")
                outcomes.append(ReviewOutcome(document=self._documents.get(item.document_id), error=e))
        return outcomes
