"""
Tests for the SQLAlchemy repositories.
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from docseal.core.entities.audit_entry import AuditAction
from docseal.core.entities.document import Document, DocumentClass, LifecycleStatus
from docseal.core.entities.forensic_report import RecommendedAction
from docseal.core.entities.permission import AccessType, Permission, utcnow
from docseal.core.errors import StaleStateError
from tests.fakes import make_report


def _document(doc_id="doc-1", owner="owner-1", fingerprint="c" * 64, **kwargs) -> Document:
    return Document(
        id=doc_id,
        owner_id=owner,
        content_fingerprint=fingerprint,
        document_class=DocumentClass.PASSPORT,
        **kwargs,
    )


class TestDocumentRepository:

    def test_add_and_get(self, documents):
        documents.add(_document(title="My passport"))
        stored = documents.get("doc-1")

        assert stored.title == "My passport"
        assert stored.lifecycle_status is LifecycleStatus.PENDING
        assert stored.version == 1
        assert stored.created_at.tzinfo is not None

    def test_same_owner_same_bytes_returns_existing(self, documents):
        documents.add(_document("doc-1"))
        again = documents.add(_document("doc-2"))
        assert again.id == "doc-1"
        assert documents.get("doc-2") is None

    def test_other_owner_same_bytes_gets_own_document(self, documents):
        documents.add(_document("doc-1"))
        other = documents.add(_document("doc-2", owner="owner-2"))
        assert other.id == "doc-2"

    def test_update_bumps_version(self, documents):
        doc = documents.add(_document())
        updated = documents.update(replace(doc, title="Renamed"))

        assert updated.version == 2
        assert documents.get(doc.id).title == "Renamed"
        assert documents.get(doc.id).version == 2

    def test_stale_update_is_rejected(self, documents):
        doc = documents.add(_document())
        documents.update(replace(doc, title="first writer"))

        with pytest.raises(StaleStateError):
            documents.update(replace(doc, title="second writer"))
        assert documents.get(doc.id).title == "first writer"

    def test_find_by_biometric_hash_excludes_owner(self, documents):
        documents.add(_document("doc-1", biometric_hash="h1"))
        assert documents.find_by_biometric_hash("h1", exclude_owner_id="owner-1") is None
        match = documents.find_by_biometric_hash("h1", exclude_owner_id="owner-2")
        assert match.id == "doc-1"

    def test_list_by_status(self, documents):
        documents.add(_document("doc-1", lifecycle_status=LifecycleStatus.UNDER_REVIEW))
        documents.add(_document("doc-2", fingerprint="d" * 64))
        queue = documents.list_by_status(LifecycleStatus.UNDER_REVIEW)
        assert [d.id for d in queue] == ["doc-1"]


class TestForensicReportRepository:

    def test_versions_increase_per_fingerprint(self, reports):
        first = reports.save(make_report(70, RecommendedAction.REVIEW))
        second = reports.save(make_report(90, RecommendedAction.APPROVE))

        assert (first.version, second.version) == (1, 2)
        latest = reports.latest("f" * 64)
        assert latest.version == 2
        assert latest.overall_score == 90
        assert latest.recommended_action is RecommendedAction.APPROVE

    def test_latest_unknown(self, reports):
        assert reports.latest("0" * 64) is None


class TestPermissionRepository:

    def _grant(self, permissions_repo, documents, expires_at=None, pid="perm-1"):
        if documents.get("doc-1") is None:
            documents.add(_document())
        return permissions_repo.add(Permission(
            id=pid,
            document_id="doc-1",
            owner_id="owner-1",
            grantee_id="bank-1",
            access_type=AccessType.READ,
            expires_at=expires_at,
        ))

    def test_deactivate_is_one_way(self, permissions_repo, documents):
        self._grant(permissions_repo, documents)
        assert permissions_repo.deactivate("perm-1", utcnow())
        assert not permissions_repo.deactivate("perm-1", utcnow())
        stored = permissions_repo.get("perm-1")
        assert not stored.is_active
        assert stored.revoked_at is not None

    def test_expired_grants_are_not_effective(self, permissions_repo, documents):
        now = utcnow()
        self._grant(permissions_repo, documents, expires_at=now - timedelta(seconds=1))
        assert permissions_repo.find_effective("doc-1", "bank-1", AccessType.READ, now) is None

    def test_deactivate_expired(self, permissions_repo, documents):
        now = utcnow()
        self._grant(permissions_repo, documents, expires_at=now - timedelta(hours=1), pid="perm-1")
        self._grant(permissions_repo, documents, expires_at=now + timedelta(hours=1), pid="perm-2")
        assert permissions_repo.deactivate_expired(now) == 1
        assert permissions_repo.get("perm-2").is_active


class TestAuditRepository:

    def test_history_is_per_document(self, audit):
        audit.record(AuditAction.DOCUMENT_SUBMITTED, actor_id="owner-1", document_id="doc-1")
        audit.record(AuditAction.DOCUMENT_SUBMITTED, actor_id="owner-2", document_id="doc-2")
        audit.record(AuditAction.ANALYSIS_STARTED, actor_id="owner-1", document_id="doc-1", details={"n": 1})

        history = audit.history("doc-1")
        assert [e.action for e in history] == [AuditAction.DOCUMENT_SUBMITTED, AuditAction.ANALYSIS_STARTED]
        assert history[1].details == {"n": 1}
