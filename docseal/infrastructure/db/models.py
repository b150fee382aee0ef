"""
Database Models: SQLAlchemy.

Tables:
  - documents: uploaded artifacts, lifecycle, issuance linkage
  - forensic_reports: versioned reports keyed by content fingerprint
  - permissions: access grants (soft state, never deleted)
  - audit_log: append-only audit trail
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text, JSON,
    ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DocumentRecord(Base):
    """One uploaded document."""
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("owner_id", "content_fingerprint", name="uq_documents_owner_fingerprint"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(128), nullable=False, index=True)
    content_fingerprint = Column(String(64), nullable=False, index=True)
    document_class = Column(String(40), nullable=False)
    title = Column(String(255), default="")
    mime_type = Column(String(100), default="image/jpeg")
    byte_size = Column(Integer, default=0)
    lifecycle_status = Column(String(20), nullable=False, index=True)

    # Decision
    decision_state = Column(String(20), nullable=False)
    decision_reason = Column(Text, default="")
    overall_score = Column(Integer, nullable=True)
    biometric_hash = Column(String(64), nullable=True, index=True)

    # Issuance
    attestation_ref = Column(String(128), nullable=True)
    token_ref = Column(String(128), nullable=True)
    ledger_confirmed = Column(Boolean, default=False)
    archive_locator = Column(String(255), nullable=True)
    issuance_claim = Column(String(36), nullable=True)
    issuance_claimed_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now)

    def __repr__(self):
        return f"<Document {self.id} [{self.lifecycle_status}] v{self.version}>"


class ForensicReportRecord(Base):
    """Immutable report version; a re-analysis inserts a new row."""
    __tablename__ = "forensic_reports"
    __table_args__ = (
        UniqueConstraint("fingerprint", "version", name="uq_forensic_reports_fingerprint_version"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    fingerprint = Column(String(64), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    overall_score = Column(Integer, nullable=False)
    recommended_action = Column(String(10), nullable=False)
    tampering_detected = Column(Boolean, default=False)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now)

    def __repr__(self):
        return f"<ForensicReport {self.fingerprint[:12]} v{self.version} score={self.overall_score}>"


class PermissionRecord(Base):
    """Access grant from a document owner to a grantee."""
    __tablename__ = "permissions"
    __table_args__ = (
        Index("ix_permissions_lookup", "document_id", "grantee_id", "access_type"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    document_id = Column(String(36), ForeignKey("documents.id"), nullable=False, index=True)
    owner_id = Column(String(128), nullable=False)
    grantee_id = Column(String(128), nullable=False, index=True)
    access_type = Column(String(10), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        state = "active" if self.is_active else "inactive"
        return f"<Permission {self.id} {self.access_type} -> {self.grantee_id} [{state}]>"


class AuditLogRecord(Base):
    """Append-only audit row."""
    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=_uuid)
    action = Column(String(64), nullable=False, index=True)
    actor_id = Column(String(128), nullable=True)
    document_id = Column(String(36), nullable=True, index=True)
    from_state = Column(String(20), nullable=True)
    to_state = Column(String(20), nullable=True)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=_now, index=True)
