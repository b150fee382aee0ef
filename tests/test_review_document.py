"""
Tests for the manual review queue.
"""

import anyio
import pytest

from docseal.core.entities.audit_entry import AuditAction
from docseal.core.entities.decision import DecisionState, ReviewAction
from docseal.core.entities.document import DocumentClass, LifecycleStatus
from docseal.core.errors import InvalidTransition, ValidationError
from docseal.core.use_cases.review_document import ReviewInput
from tests.fakes import tampered_payloads


@pytest.fixture
def queued(container, analysis):
    """One passport parked in UNDER_REVIEW."""
    analysis.payloads = tampered_payloads()

    async def run():
        return await container.submit.execute(b"borderline-scan", owner_id="owner-1", document_class=DocumentClass.PASSPORT)

    return anyio.run(run).document


def _review(container, document_id, action, comments=None, image_bytes=None):
    async def run():
        return await container.review.review(
            document_id, action, "reviewer-1", comments=comments, image_bytes=image_bytes
        )

    return anyio.run(run)


class TestReviewQueue:

    def test_queue_lists_documents_under_review(self, container, queued):
        assert [d.id for d in container.review.queue()] == [queued.id]

    def test_approval_attests_and_waits_for_the_file(self, container, queued, ledger):
        outcome = _review(container, queued.id, ReviewAction.APPROVE)

        assert outcome.decision.state is DecisionState.APPROVED
        assert outcome.issuance.issuance_pending
        assert outcome.document.lifecycle_status is LifecycleStatus.VERIFIED
        assert outcome.document.attestation_ref is not None
        assert ledger.writes == 1
        assert container.review.queue() == []

        async def resume():
            return await container.issuance.retry_issuance(queued.id, b"borderline-scan", requester_id="owner-1")

        assert anyio.run(resume).issued
        assert ledger.writes == 1

    def test_approval_with_file_issues_at_once(self, container, queued):
        outcome = _review(container, queued.id, ReviewAction.APPROVE, image_bytes=b"borderline-scan")
        assert outcome.issuance.issued
        assert outcome.document.lifecycle_status is LifecycleStatus.ISSUED

    def test_rejection_requires_comments(self, container, queued):
        with pytest.raises(ValidationError):
            _review(container, queued.id, ReviewAction.REJECT)
        assert container.documents.get(queued.id).lifecycle_status is LifecycleStatus.UNDER_REVIEW

    def test_rejection_returns_remediation(self, container, queued):
        outcome = _review(container, queued.id, ReviewAction.REJECT, comments="Font mismatch on birth date")

        assert outcome.document.lifecycle_status is LifecycleStatus.REJECTED
        assert outcome.decision.remediation.score == 83
        assert "Font mismatch on birth date" in outcome.decision.remediation.reasons
        actions = [e.action for e in container.audit.history(queued.id)]
        assert AuditAction.REVIEW_REJECTED in actions

    def test_decided_documents_cannot_be_reviewed_again(self, container, queued):
        _review(container, queued.id, ReviewAction.REJECT, comments="forged")
        with pytest.raises(InvalidTransition):
            _review(container, queued.id, ReviewAction.APPROVE)


class TestBatchReview:

    def test_one_bad_item_does_not_stop_the_batch(self, container, queued):
        async def run():
            return await container.review.review_batch(
                [
                    ReviewInput(document_id="missing", action=ReviewAction.APPROVE),
                    ReviewInput(document_id=queued.id, action=ReviewAction.REJECT, comments="forged"),
                ],
                reviewer_id="reviewer-1",
            )

        missing, rejected = anyio.run(run)
        assert missing.error is not None
        assert missing.document is None
        assert rejected.error is None
        assert rejected.document.lifecycle_status is LifecycleStatus.REJECTED
