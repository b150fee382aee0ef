"""
Contract: Repositories

Persistence ports used by the use cases. The SQLAlchemy adapters
live in infrastructure/db/repository.py.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from docseal.core.entities.audit_entry import AuditLogEntry
from docseal.core.entities.document import Document, LifecycleStatus
from docseal.core.entities.forensic_report import ForensicReport
from docseal.core.entities.permission import AccessType, Permission


class IDocumentRepository(ABC):
    """Port: Document persistence with optimistic versioning."""

    @abstractmethod
    def add(self, document: Document) -> Document:
        ...

    @abstractmethod
    def get(self, document_id: str) -> Document | None:
        ...

    @abstractmethod
    def find_by_owner_and_fingerprint(self, owner_id: str, fingerprint: str) -> Document | None:
        ...

    @abstractmethod
    def find_by_biometric_hash(self, biometric_hash: str, exclude_owner_id: str) -> Document | None:
        """First document carrying `biometric_hash` owned by someone else."""
        ...

    @abstractmethod
    def list_by_status(self, status: LifecycleStatus, limit: int = 50, offset: int = 0) -> list[Document]:
        ...

    @abstractmethod
    def update(self, document: Document) -> Document:
        """
        Persist `document` if the stored version still equals
        `document.version`; returns the copy with the bumped version.

        Raises:
            StaleStateError: another writer got there first.
        """
        ...


class IForensicReportRepository(ABC):
    """Port: versioned forensic reports, keyed by fingerprint."""

    @abstractmethod
    def save(self, report: ForensicReport) -> ForensicReport:
        """Insert as a new version; returns the report with its version number."""
        ...

    @abstractmethod
    def latest(self, fingerprint: str) -> ForensicReport | None:
        ...


class IPermissionRepository(ABC):
    """Port: permission grants (soft state only)."""

    @abstractmethod
    def add(self, permission: Permission) -> Permission:
        ...

    @abstractmethod
    def get(self, permission_id: str) -> Permission | None:
        ...

    @abstractmethod
    def find_effective(
        self, document_id: str, grantee_id: str, access_type: AccessType, now: datetime
    ) -> Permission | None:
        ...

    @abstractmethod
    def list_for_document(self, document_id: str, only_active: bool = True) -> list[Permission]:
        ...

    @abstractmethod
    def list_for_grantee(self, grantee_id: str, now: datetime) -> list[Permission]:
        ...

    @abstractmethod
    def list_expiring(self, now: datetime, until: datetime) -> list[Permission]:
        ...

    @abstractmethod
    def deactivate(self, permission_id: str, revoked_at: datetime) -> bool:
        """Flip an active row to inactive. Returns False if it was already inactive."""
        ...

    @abstractmethod
    def deactivate_for_document(self, document_id: str, revoked_at: datetime) -> int:
        ...

    @abstractmethod
    def deactivate_expired(self, now: datetime) -> int:
        ...


class IAuditRepository(ABC):
    """Port: append-only audit log."""

    @abstractmethod
    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        ...

    @abstractmethod
    def list_for_document(self, document_id: str) -> list[AuditLogEntry]:
        ...
