"""
Pydantic schemas: Request bodies.
"""

from pydantic import BaseModel, Field

from docseal.core.entities.decision import ReviewAction
from docseal.core.entities.permission import AccessType


class ReviewRequest(BaseModel):
    action: ReviewAction
    comments: str | None = None


class BatchReviewItem(ReviewRequest):
    document_id: str


class BatchReviewRequest(BaseModel):
    actions: list[BatchReviewItem] = Field(min_length=1)


class GrantPermissionRequest(BaseModel):
    document_id: str
    grantee_id: str
    access_type: AccessType
    expires_in: int | None = Field(default=None, ge=0, description="Seconds from now; 0 = already expired")
