"""
Use Case: Permission Ledger

Owner-controlled, time-boxed access grants. Rows are never deleted:
revocation and expiry flip `is_active`, which only ever goes from
true to false.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable

from docseal.core.entities.audit_entry import AuditAction
from docseal.core.entities.document import Document, LifecycleStatus
from docseal.core.entities.permission import AccessType, Permission, utcnow
from docseal.core.errors import NotFoundError, NotOwner, ValidationError
from docseal.core.interfaces.repositories import IDocumentRepository, IPermissionRepository
from docseal.core.services.audit_trail import AuditTrail

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system:permissions"


class PermissionLedger:
    """Use Case: grant / revoke / check / list / cleanup."""

    def __init__(
        self,
        permissions: IPermissionRepository,
        documents: IDocumentRepository,
        audit: AuditTrail,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._permissions = permissions
        self._documents = documents
        self._audit = audit
        self._clock = clock

    def grant(
        self,
        document_id: str,
        owner_id: str,
        grantee_id: str,
        access_type: AccessType,
        expires_at: datetime | None = None,
    ) -> Permission:
        """
        Grant `access_type` on a document to `grantee_id`.

        Idempotent: if the same (document, grantee, type) grant is already
        effective, that grant is returned unchanged.

        Raises:
            NotFoundError: unknown document.
            NotOwner: `owner_id` does not own the document.
            ValidationError: self-grant or rejected document.
        """
        document = self._owned_document(document_id, owner_id)
        if grantee_id == owner_id:
            raise ValidationError("Cannot share a document with yourself", document_id=document_id)
        if document.lifecycle_status is LifecycleStatus.REJECTED:
            raise ValidationError("Rejected documents cannot be shared", document_id=document_id)

        now = self._clock()
        existing = self._permissions.find_effective(document_id, grantee_id, access_type, now)
        if existing is not None:
            logger.info(f"Permission {existing.id} already grants {access_type.value} to {grantee_id}, reusing")
            return existing

        permission = self._permissions.add(Permission(
            id=str(uuid.uuid4()),
            document_id=document_id,
            owner_id=owner_id,
            grantee_id=grantee_id,
            access_type=access_type,
            expires_at=expires_at,
            created_at=now,
        ))
        self._audit.record(
            AuditAction.PERMISSION_GRANTED,
            actor_id=owner_id,
            document_id=document_id,
            details={
                "permission_id": permission.id,
                "grantee_id": grantee_id,
                "access_type": access_type.value,
                "expires_at": expires_at.isoformat() if expires_at else None,
            },
        )
        return permission

    def revoke(self, permission_id: str, requester_id: str) -> Permission:
        """Deactivate a grant. Revoking an inactive grant is a no-op (no second audit entry)."""
        permission = self._permissions.get(permission_id)
        if permission is None:
            raise NotFoundError("Permission", permission_id)
        self._owned_document(permission.document_id, requester_id)

        now = self._clock()
        if not self._permissions.deactivate(permission_id, now):
            logger.info(f"Permission {permission_id} already inactive")
            return permission

        self._audit.record(
            AuditAction.PERMISSION_REVOKED,
            actor_id=requester_id,
            document_id=permission.document_id,
            details={
                "permission_id": permission_id,
                "grantee_id": permission.grantee_id,
                "access_type": permission.access_type.value,
            },
        )
        return self._permissions.get(permission_id)

    def check(
        self,
        document_id: str,
        grantee_id: str,
        access_type: AccessType,
        actor_id: str | None = None,
    ) -> bool:
        """
        True iff an active, unexpired grant of exactly `access_type`
        exists. The document owner always has access.
        """
        document = self._documents.get(document_id)
        if document is None:
            return False
        if document.owner_id == grantee_id:
            granted = True
        else:
            granted = self._permissions.find_effective(document_id, grantee_id, access_type, self._clock()) is not None

        if actor_id is not None:
            self._audit.record(
                AuditAction.ACCESS_CHECKED,
                actor_id=actor_id,
                document_id=document_id,
                details={"grantee_id": grantee_id, "access_type": access_type.value, "granted": granted},
            )
        return granted

    def list_for_document(self, document_id: str, requester_id: str, only_active: bool = True) -> list[Permission]:
        self._owned_document(document_id, requester_id)
        return self._permissions.list_for_document(document_id, only_active=only_active)

    def list_for_grantee(self, grantee_id: str) -> list[Permission]:
        """Effective grants held by `grantee_id` ("shared with me")."""
        return self._permissions.list_for_grantee(grantee_id, self._clock())

    def revoke_all(self, document_id: str, owner_id: str) -> int:
        self._owned_document(document_id, owner_id)
        count = self._permissions.deactivate_for_document(document_id, self._clock())
        if count:
            self._audit.record(
                AuditAction.PERMISSION_REVOKED,
                actor_id=owner_id,
                document_id=document_id,
                details={"revoked_count": count, "scope": "all"},
            )
        return count

    def expiring_soon(self, within_days: int = 7) -> list[Permission]:
        now = self._clock()
        return self._permissions.list_expiring(now, now + timedelta(days=within_days))

    def cleanup_expired(self) -> int:
        """Deactivate every expired grant in one bulk update."""
        count = self._permissions.deactivate_expired(self._clock())
        if count:
            self._audit.record(
                AuditAction.PERMISSIONS_EXPIRED,
                actor_id=SYSTEM_ACTOR,
                details={"deactivated_count": count},
            )
        return count

    def _owned_document(self, document_id: str, requester_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        if document.owner_id != requester_id:
            raise NotOwner(document_id, requester_id)
        return document
