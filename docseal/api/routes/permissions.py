"""
Routes: permission grants.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends

from docseal.api.dependencies import (
    Container,
    Principal,
    current_user,
    get_container,
    require_reviewer,
)
from docseal.api.schemas.requests import GrantPermissionRequest
from docseal.api.schemas.responses import AccessCheckResponse, CountResponse, PermissionResponse
from docseal.core.entities.permission import AccessType, utcnow

router = APIRouter()


@router.post("/permissions", response_model=PermissionResponse, status_code=201)
async def grant_permission(
    body: GrantPermissionRequest,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    """Share a document. `expires_in` is in seconds; omit it for an unlimited grant."""
    expires_at = None
    if body.expires_in is not None:
        expires_at = utcnow() + timedelta(seconds=body.expires_in)
    permission = container.permissions.grant(
        body.document_id,
        owner_id=user.user_id,
        grantee_id=body.grantee_id,
        access_type=body.access_type,
        expires_at=expires_at,
    )
    return PermissionResponse.from_entity(permission)


@router.delete("/permissions/{permission_id}", response_model=PermissionResponse)
async def revoke_permission(
    permission_id: str,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    return PermissionResponse.from_entity(container.permissions.revoke(permission_id, user.user_id))


@router.get("/permissions", response_model=list[PermissionResponse])
async def list_permissions(
    document_id: str | None = None,
    include_inactive: bool = False,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    """Grants on one of your documents, or (without document_id) grants shared with you."""
    if document_id is None:
        permissions = container.permissions.list_for_grantee(user.user_id)
    else:
        permissions = container.permissions.list_for_document(
            document_id, user.user_id, only_active=not include_inactive
        )
    return [PermissionResponse.from_entity(p) for p in permissions]


@router.get("/permissions/check", response_model=AccessCheckResponse)
async def check_permission(
    document_id: str,
    access_type: AccessType,
    grantee_id: str | None = None,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    grantee = grantee_id or user.user_id
    granted = container.permissions.check(document_id, grantee, access_type, actor_id=user.user_id)
    return AccessCheckResponse(
        document_id=document_id,
        grantee_id=grantee,
        access_type=access_type.value,
        granted=granted,
    )


@router.delete("/documents/{document_id}/permissions", response_model=CountResponse)
async def revoke_all_permissions(
    document_id: str,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    return CountResponse(count=container.permissions.revoke_all(document_id, user.user_id))


@router.get("/permissions/expiring", response_model=list[PermissionResponse])
async def expiring_permissions(
    within_days: int = 7,
    user: Principal = Depends(current_user),
    container: Container = Depends(get_container),
):
    """Your grants (as owner) that expire within `within_days`."""
    return [
        PermissionResponse.from_entity(p)
        for p in container.permissions.expiring_soon(within_days)
        if p.owner_id == user.user_id
    ]


@router.post("/permissions/cleanup", response_model=CountResponse)
async def cleanup_expired_permissions(
    admin: Principal = Depends(require_reviewer),
    container: Container = Depends(get_container),
):
    """Deactivate every expired grant (batch job)."""
    return CountResponse(count=container.permissions.cleanup_expired())
