"""
SQLAlchemy repositories.

Handles:
  - Documents with optimistic versioning (compare-and-set on `version`)
  - Versioned forensic reports keyed by fingerprint
  - Permission grants (guarded bulk updates, never deletes)
  - Append-only audit log
"""

import logging
from dataclasses import replace
from datetime import datetime

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError

from docseal.core.entities.audit_entry import AuditAction, AuditLogEntry
from docseal.core.entities.decision import DecisionState
from docseal.core.entities.document import Document, DocumentClass, LifecycleStatus
from docseal.core.entities.forensic_report import ForensicReport
from docseal.core.entities.permission import AccessType, Permission, as_utc, utcnow
from docseal.core.errors import StaleStateError
from docseal.core.interfaces.repositories import (
    IAuditRepository,
    IDocumentRepository,
    IForensicReportRepository,
    IPermissionRepository,
)
from docseal.infrastructure.db.database import Database
from docseal.infrastructure.db.models import (
    AuditLogRecord,
    DocumentRecord,
    ForensicReportRecord,
    PermissionRecord,
)

logger = logging.getLogger(__name__)


# ── Documents ──

def _to_document(record: DocumentRecord) -> Document:
    return Document(
        id=record.id,
        owner_id=record.owner_id,
        content_fingerprint=record.content_fingerprint,
        document_class=DocumentClass(record.document_class),
        title=record.title or "",
        mime_type=record.mime_type or "",
        byte_size=record.byte_size or 0,
        lifecycle_status=LifecycleStatus(record.lifecycle_status),
        decision_state=DecisionState(record.decision_state),
        decision_reason=record.decision_reason or "",
        overall_score=record.overall_score,
        biometric_hash=record.biometric_hash,
        attestation_ref=record.attestation_ref,
        token_ref=record.token_ref,
        ledger_confirmed=bool(record.ledger_confirmed),
        archive_locator=record.archive_locator,
        issuance_claim=record.issuance_claim,
        issuance_claimed_at=as_utc(record.issuance_claimed_at),
        version=record.version,
        created_at=as_utc(record.created_at),
        updated_at=as_utc(record.updated_at),
    )


def _document_columns(document: Document) -> dict:
    return {
        "title": document.title,
        "mime_type": document.mime_type,
        "byte_size": document.byte_size,
        "lifecycle_status": document.lifecycle_status.value,
        "decision_state": document.decision_state.value,
        "decision_reason": document.decision_reason,
        "overall_score": document.overall_score,
        "biometric_hash": document.biometric_hash,
        "attestation_ref": document.attestation_ref,
        "token_ref": document.token_ref,
        "ledger_confirmed": document.ledger_confirmed,
        "archive_locator": document.archive_locator,
        "issuance_claim": document.issuance_claim,
        "issuance_claimed_at": document.issuance_claimed_at,
    }


class SqlDocumentRepository(IDocumentRepository):
    """Document store. `update` is a compare-and-set on the version column."""

    def __init__(self, database: Database):
        self._db = database

    def add(self, document: Document) -> Document:
        try:
            with self._db.session() as db:
                record = DocumentRecord(
                    id=document.id,
                    owner_id=document.owner_id,
                    content_fingerprint=document.content_fingerprint,
                    document_class=document.document_class.value,
                    version=document.version,
                    created_at=document.created_at,
                    updated_at=document.updated_at,
                    **_document_columns(document),
                )
                db.add(record)
                db.flush()
                logger.info(f"Saved document {record.id} [{record.lifecycle_status}]")
                return _to_document(record)
        except IntegrityError:
            # lost the race against an identical upload from the same owner
            existing = self.find_by_owner_and_fingerprint(document.owner_id, document.content_fingerprint)
            if existing is None:
                raise
            logger.info(f"Document {existing.id} already exists for owner {document.owner_id}, reusing")
            return existing

    def get(self, document_id: str) -> Document | None:
        with self._db.session() as db:
            record = db.query(DocumentRecord).filter_by(id=document_id).first()
            return _to_document(record) if record else None

    def find_by_owner_and_fingerprint(self, owner_id: str, fingerprint: str) -> Document | None:
        with self._db.session() as db:
            record = (
                db.query(DocumentRecord)
                .filter_by(owner_id=owner_id, content_fingerprint=fingerprint)
                .first()
            )
            return _to_document(record) if record else None

    def find_by_biometric_hash(self, biometric_hash: str, exclude_owner_id: str) -> Document | None:
        with self._db.session() as db:
            record = (
                db.query(DocumentRecord)
                .filter(DocumentRecord.biometric_hash == biometric_hash)
                .filter(DocumentRecord.owner_id != exclude_owner_id)
                .order_by(DocumentRecord.created_at)
                .first()
            )
            return _to_document(record) if record else None

    def list_by_status(self, status: LifecycleStatus, limit: int = 50, offset: int = 0) -> list[Document]:
        with self._db.session() as db:
            records = (
                db.query(DocumentRecord)
                .filter_by(lifecycle_status=status.value)
                .order_by(DocumentRecord.created_at)
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [_to_document(r) for r in records]

    def update(self, document: Document) -> Document:
        updated_at = utcnow()
        with self._db.session() as db:
            rowcount = (
                db.query(DocumentRecord)
                .filter_by(id=document.id, version=document.version)
                .update(
                    {
                        **_document_columns(document),
                        "version": document.version + 1,
                        "updated_at": updated_at,
                    },
                    synchronize_session=False,
                )
            )
        if rowcount != 1:
            logger.warning(f"Stale write on document {document.id} (expected v{document.version})")
            raise StaleStateError(
                f"Document {document.id} was modified concurrently",
                document_id=document.id,
                expected_version=document.version,
            )
        return replace(document, version=document.version + 1, updated_at=updated_at)


# ── Forensic reports ──

class SqlForensicReportRepository(IForensicReportRepository):
    """Reports are inserted, never updated; a re-analysis bumps the version."""

    def __init__(self, database: Database):
        self._db = database

    def save(self, report: ForensicReport) -> ForensicReport:
        with self._db.session() as db:
            current = (
                db.query(func.max(ForensicReportRecord.version))
                .filter(ForensicReportRecord.fingerprint == report.fingerprint)
                .scalar()
            )
            stored = replace(report, version=(current or 0) + 1)
            db.add(ForensicReportRecord(
                fingerprint=stored.fingerprint,
                version=stored.version,
                overall_score=stored.overall_score,
                recommended_action=stored.recommended_action.value,
                tampering_detected=stored.tampering_detected,
                payload=stored.to_dict(),
                created_at=stored.created_at,
            ))
            logger.info(
                f"Saved forensic report {stored.fingerprint[:12]} v{stored.version} "
                f"score={stored.overall_score}"
            )
            return stored

    def latest(self, fingerprint: str) -> ForensicReport | None:
        with self._db.session() as db:
            record = (
                db.query(ForensicReportRecord)
                .filter_by(fingerprint=fingerprint)
                .order_by(desc(ForensicReportRecord.version))
                .first()
            )
            return ForensicReport.from_dict(record.payload) if record else None


# ── Permissions ──

def _to_permission(record: PermissionRecord) -> Permission:
    return Permission(
        id=record.id,
        document_id=record.document_id,
        owner_id=record.owner_id,
        grantee_id=record.grantee_id,
        access_type=AccessType(record.access_type),
        expires_at=as_utc(record.expires_at),
        is_active=bool(record.is_active),
        created_at=as_utc(record.created_at),
        revoked_at=as_utc(record.revoked_at),
    )


class SqlPermissionRepository(IPermissionRepository):
    """Permission grants. Deactivation is guarded on `is_active` so repeats are no-ops."""

    def __init__(self, database: Database):
        self._db = database

    def add(self, permission: Permission) -> Permission:
        with self._db.session() as db:
            record = PermissionRecord(
                id=permission.id,
                document_id=permission.document_id,
                owner_id=permission.owner_id,
                grantee_id=permission.grantee_id,
                access_type=permission.access_type.value,
                expires_at=permission.expires_at,
                is_active=permission.is_active,
                created_at=permission.created_at,
                revoked_at=permission.revoked_at,
            )
            db.add(record)
            db.flush()
            return _to_permission(record)

    def get(self, permission_id: str) -> Permission | None:
        with self._db.session() as db:
            record = db.query(PermissionRecord).filter_by(id=permission_id).first()
            return _to_permission(record) if record else None

    def find_effective(
        self, document_id: str, grantee_id: str, access_type: AccessType, now: datetime
    ) -> Permission | None:
        with self._db.session() as db:
            records = (
                db.query(PermissionRecord)
                .filter_by(
                    document_id=document_id,
                    grantee_id=grantee_id,
                    access_type=access_type.value,
                    is_active=True,
                )
                .order_by(desc(PermissionRecord.created_at))
                .all()
            )
            for record in records:
                permission = _to_permission(record)
                if permission.is_effective(now):
                    return permission
            return None

    def list_for_document(self, document_id: str, only_active: bool = True) -> list[Permission]:
        with self._db.session() as db:
            query = db.query(PermissionRecord).filter_by(document_id=document_id)
            if only_active:
                query = query.filter_by(is_active=True)
            return [_to_permission(r) for r in query.order_by(PermissionRecord.created_at).all()]

    def list_for_grantee(self, grantee_id: str, now: datetime) -> list[Permission]:
        with self._db.session() as db:
            records = (
                db.query(PermissionRecord)
                .filter_by(grantee_id=grantee_id, is_active=True)
                .order_by(PermissionRecord.created_at)
                .all()
            )
            return [p for p in map(_to_permission, records) if p.is_effective(now)]

    def list_expiring(self, now: datetime, until: datetime) -> list[Permission]:
        with self._db.session() as db:
            records = (
                db.query(PermissionRecord)
                .filter(PermissionRecord.is_active.is_(True))
                .filter(PermissionRecord.expires_at.isnot(None))
                .order_by(PermissionRecord.expires_at)
                .all()
            )
            return [
                p for p in map(_to_permission, records)
                if now < p.expires_at <= until
            ]

    def deactivate(self, permission_id: str, revoked_at: datetime) -> bool:
        with self._db.session() as db:
            rowcount = (
                db.query(PermissionRecord)
                .filter_by(id=permission_id, is_active=True)
                .update({"is_active": False, "revoked_at": revoked_at}, synchronize_session=False)
            )
        return rowcount == 1

    def deactivate_for_document(self, document_id: str, revoked_at: datetime) -> int:
        with self._db.session() as db:
            return (
                db.query(PermissionRecord)
                .filter_by(document_id=document_id, is_active=True)
                .update({"is_active": False, "revoked_at": revoked_at}, synchronize_session=False)
            )

    def deactivate_expired(self, now: datetime) -> int:
        with self._db.session() as db:
            count = (
                db.query(PermissionRecord)
                .filter(PermissionRecord.is_active.is_(True))
                .filter(PermissionRecord.expires_at.isnot(None))
                .filter(PermissionRecord.expires_at <= now)
                .update({"is_active": False, "revoked_at": now}, synchronize_session=False)
            )
        if count:
            logger.info(f"Deactivated {count} expired permission(s)")
        return count


# ── Audit log ──

def _to_entry(record: AuditLogRecord) -> AuditLogEntry:
    return AuditLogEntry(
        id=record.id,
        action=AuditAction(record.action),
        actor_id=record.actor_id,
        document_id=record.document_id,
        from_state=record.from_state,
        to_state=record.to_state,
        details=record.details or {},
        created_at=as_utc(record.created_at),
    )


class SqlAuditRepository(IAuditRepository):
    """Insert-only."""

    def __init__(self, database: Database):
        self._db = database

    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        with self._db.session() as db:
            db.add(AuditLogRecord(
                id=entry.id,
                action=entry.action.value,
                actor_id=entry.actor_id,
                document_id=entry.document_id,
                from_state=entry.from_state,
                to_state=entry.to_state,
                details=entry.details,
                created_at=entry.created_at,
            ))
        return entry

    def list_for_document(self, document_id: str) -> list[AuditLogEntry]:
        with self._db.session() as db:
            records = (
                db.query(AuditLogRecord)
                .filter_by(document_id=document_id)
                .order_by(AuditLogRecord.created_at)
                .all()
            )
            return [_to_entry(r) for r in records]
