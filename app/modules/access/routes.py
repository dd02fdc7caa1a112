from fastapi import APIRouter, Depends
from app.config.permissions_config import PermissionName
from app.core.dependencies import get_resolver, require_permission
from app.modules.access.schemas import PermissionCheckResponse, UserPermissionsResponse
from app.modules.access.service import PermissionResolver
from typing import Dict

router = APIRouter(prefix="/access", tags=["access"])


@router.get("/users/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: str,
    user_data: Dict = Depends(require_permission(PermissionName.MANAGE_ADMINS)),
    resolver: PermissionResolver = Depends(get_resolver)
):
    """Effective permissions of any user, with the roles they come from"""
    roles = sorted(resolver.get_user_roles(user_id), key=lambda role: role.display_name)
    return UserPermissionsResponse(
        user_id=user_id,
        is_super_admin=any(role.name == resolver.super_admin_role for role in roles),
        roles=roles,
        permissions=resolver.resolve_sorted(user_id)
    )


@router.get("/users/{user_id}/check", response_model=PermissionCheckResponse)
async def check_user_permission(
    user_id: str,
    permission: PermissionName,
    user_data: Dict = Depends(require_permission(PermissionName.MANAGE_ADMINS)),
    resolver: PermissionResolver = Depends(get_resolver)
):
    """Check a single permission for a user"""
    return PermissionCheckResponse(
        user_id=user_id,
        permission=permission.value,
        allowed=resolver.check_permission(user_id, permission)
    )
