"""
Audit Trail: append-only record of every state change and access decision.

Usage:
    audit.record(
        AuditAction.PERMISSION_GRANTED,
        actor_id="user-1",
        document_id="doc-9",
        details={"grantee_id": "bank-7", "access_type": "READ"},
    )
"""

import logging
import uuid
from typing import Any

from docseal.core.entities.audit_entry import AuditAction, AuditLogEntry
from docseal.core.interfaces.repositories import IAuditRepository

logger = logging.getLogger(__name__)


class AuditTrail:
    """Writes immutable audit entries. There is no update or delete path."""

    def __init__(self, repository: IAuditRepository):
        self._repository = repository

    def record(
        self,
        action: AuditAction,
        actor_id: str | None = None,
        document_id: str | None = None,
        from_state: str | None = None,
        to_state: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=str(uuid.uuid4()),
            action=action,
            actor_id=actor_id,
            document_id=document_id,
            from_state=from_state,
            to_state=to_state,
            details=details or {},
        )
        self._repository.append(entry)
        transition = f" {from_state}->{to_state}" if from_state or to_state else ""
        logger.info(f"AUDIT {action.value} doc={document_id} actor={actor_id}{transition}")
        return entry

    def history(self, document_id: str) -> list[AuditLogEntry]:
        return self._repository.list_for_document(document_id)
