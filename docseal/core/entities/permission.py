"""
Entity: Permission

A time-boxed access grant from a document owner to a grantee.
Soft state only; rows are never deleted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class AccessType(str, Enum):
    READ = "READ"
    SHARE = "SHARE"
    VERIFY = "VERIFY"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; treat naive datetimes as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass
class Permission:
    """Domain entity: Permission."""
    id: str
    document_id: str
    owner_id: str
    grantee_id: str
    access_type: AccessType
    expires_at: datetime | None = None      # None → unlimited
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    revoked_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return as_utc(self.expires_at) <= (now or utcnow())

    def is_effective(self, now: datetime | None = None) -> bool:
        """Active and not expired."""
        return self.is_active and not self.is_expired(now)
