"""
Domain errors.

Every error carries a stable code, an HTTP-equivalent status and a
context dict (document id, stage, ...) so the caller can retry or display.
"""

from typing import Any


class DocSealError(Exception):
    """Base exception for DocSeal errors."""

    code = "docseal_error"
    status_code = 500

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "context": self.context}


class ValidationError(DocSealError):
    """Bad input. Never retried."""

    code = "validation_error"
    status_code = 400


class NotFoundError(DocSealError):
    """Resource not found."""

    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: Any = None, **context: Any):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message, **context)


class AuthorizationError(DocSealError):
    """Authenticated but not permitted."""

    code = "permission_denied"
    status_code = 403


class NotOwner(AuthorizationError):
    """Requester does not own the document."""

    code = "not_owner"

    def __init__(self, document_id: str, requester_id: str):
        super().__init__(
            f"User '{requester_id}' does not own document '{document_id}'",
            document_id=document_id,
            requester_id=requester_id,
        )


class NotAuthenticated(AuthorizationError):
    """No identity on the request."""

    code = "authentication_required"
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class TransientExternalError(DocSealError):
    """
    Timeout / network failure against the analysis engine, the ledger
    or the archive. Retryable with backoff.
    """

    code = "external_unavailable"
    status_code = 503

    def __init__(self, service: str, message: str, **context: Any):
        self.service = service
        super().__init__(f"{service}: {message}", service=service, **context)


class InvalidTransition(DocSealError):
    """State machine violation."""

    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str, **context: Any):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Illegal transition {current} -> {requested}",
            current=current,
            requested=requested,
            **context,
        )


class StaleStateError(DocSealError):
    """Concurrent update lost the optimistic version check. Re-read and retry."""

    code = "stale_state"
    status_code = 409
