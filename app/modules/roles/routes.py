from fastapi import APIRouter, Depends
from app.config.permissions_config import PermissionCategory, PermissionName, get_permission_categories
from app.modules.roles.schemas import (
    Permission, PermissionCategoryInfo, PermissionUpdate,
    Role, RoleCreate, RoleUpdate, RoleWithPermissionsResponse,
    RolePermissionsUpdate, RolePermissionsUpdateResponse
)
from app.modules.roles.service import RoleService, PermissionService
from app.core.dependencies import (
    get_permission_service,
    get_role_service,
    require_admin,
    require_permission,
    require_super_admin,
)
from typing import List, Optional, Dict

router = APIRouter(prefix="/roles", tags=["roles"])


# Permission endpoints
@router.get("/permissions", response_model=List[Permission])
async def list_permissions(
    category: Optional[PermissionCategory] = None,
    user_data: Dict = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """List the permission catalog ordered by category and display name"""
    return service.list_permissions(category=category)


@router.get("/permissions/{permission_id}", response_model=Permission)
async def get_permission(
    permission_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Get permission by ID"""
    return service.get_permission(permission_id)


@router.patch("/permissions/{permission_id}", response_model=Permission)
async def update_permission(
    permission_id: str,
    permission_data: PermissionUpdate,
    user_data: Dict = Depends(require_super_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Update display name / description of a permission (name is immutable)"""
    return service.update_permission(permission_id, permission_data)


@router.get("/permission-categories", response_model=List[PermissionCategoryInfo])
async def list_permission_categories(
    user_data: Dict = Depends(require_admin)
):
    """Permission categories with the labels the console groups permissions under"""
    return get_permission_categories()


# Role endpoints
@router.get("", response_model=List[Role])
async def list_roles(
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """List roles ordered by display name"""
    return service.list_roles()


@router.post("", response_model=RoleWithPermissionsResponse, status_code=201)
async def create_role(
    role_data: RoleCreate,
    user_data: Dict = Depends(require_permission(PermissionName.MANAGE_ADMINS)),
    service: RoleService = Depends(get_role_service)
):
    """Create a new role with its permissions"""
    return service.create_role(role_data)


@router.get("/{role_id}", response_model=RoleWithPermissionsResponse)
async def get_role(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Get role with all associated permissions"""
    return service.get_role_with_permissions(role_id)


@router.get("/{role_id}/permissions", response_model=List[Permission])
async def get_role_permissions(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Get all permissions for a role"""
    return service.get_role_permissions(role_id)


@router.put("/{role_id}", response_model=Role)
async def update_role(
    role_id: str,
    role_data: RoleUpdate,
    user_data: Dict = Depends(require_permission(PermissionName.MANAGE_ADMINS)),
    service: RoleService = Depends(get_role_service)
):
    """Update role name / display fields (system roles: super-admin only, and they keep their name)"""
    return service.update_role(user_data["id"], role_id, role_data)


@router.put("/{role_id}/permissions", response_model=RolePermissionsUpdateResponse)
async def replace_role_permissions(
    role_id: str,
    bulk_data: RolePermissionsUpdate,
    user_data: Dict = Depends(require_permission(PermissionName.MANAGE_ADMINS)),
    service: RoleService = Depends(get_role_service)
):
    """Replace all permissions of a non-system role"""
    return service.replace_role_permissions(role_id, bulk_data.permission_ids)


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: str,
    user_data: Dict = Depends(require_permission(PermissionName.MANAGE_ADMINS)),
    service: RoleService = Depends(get_role_service)
):
    """Delete a non-system role without active assignments"""
    service.delete_role(role_id)
    return None
