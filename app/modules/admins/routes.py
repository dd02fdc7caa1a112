from fastapi import APIRouter, Depends
from app.config.permissions_config import PermissionName
from app.core.dependencies import get_lifecycle_manager, require_permission
from app.modules.admins.schemas import (
    AdminCreate, AdminPermissionsUpdate, AdminRolesUpdate, AdminUser
)
from app.modules.admins.service import AdminLifecycleManager
from typing import Dict, List

router = APIRouter(prefix="/admins", tags=["admins"])

manage_admins = require_permission(PermissionName.MANAGE_ADMINS)


@router.get("", response_model=List[AdminUser])
async def list_admins(
    include_deactivated: bool = False,
    user_data: Dict = Depends(manage_admins),
    manager: AdminLifecycleManager = Depends(get_lifecycle_manager)
):
    """List administrators with their roles and effective permissions, newest first"""
    return manager.list_admins(include_deactivated=include_deactivated)


@router.post("", response_model=AdminUser, status_code=201)
async def create_admin(
    admin_data: AdminCreate,
    user_data: Dict = Depends(manage_admins),
    manager: AdminLifecycleManager = Depends(get_lifecycle_manager)
):
    """Create an administrator account with initial roles and/or direct permissions"""
    return manager.create_admin(user_data["id"], admin_data)


@router.get("/{user_id}", response_model=AdminUser)
async def get_admin(
    user_id: str,
    user_data: Dict = Depends(manage_admins),
    manager: AdminLifecycleManager = Depends(get_lifecycle_manager)
):
    """Get an administrator"""
    return manager.get_admin(user_id)


@router.put("/{user_id}/roles", response_model=AdminUser)
async def update_admin_roles(
    user_id: str,
    roles_data: AdminRolesUpdate,
    user_data: Dict = Depends(manage_admins),
    manager: AdminLifecycleManager = Depends(get_lifecycle_manager)
):
    """Replace the administrator's roles"""
    return manager.update_admin_roles(user_data["id"], user_id, roles_data.role_ids)


@router.put("/{user_id}/permissions", response_model=AdminUser)
async def update_admin_permissions(
    user_id: str,
    permissions_data: AdminPermissionsUpdate,
    user_data: Dict = Depends(manage_admins),
    manager: AdminLifecycleManager = Depends(get_lifecycle_manager)
):
    """Replace the administrator's direct permissions"""
    return manager.update_admin_permissions(user_data["id"], user_id, permissions_data.permission_ids)


@router.put("/{user_id}/deactivate", response_model=AdminUser)
async def deactivate_admin(
    user_id: str,
    user_data: Dict = Depends(manage_admins),
    manager: AdminLifecycleManager = Depends(get_lifecycle_manager)
):
    """Deactivate an administrator (never the caller)"""
    return manager.deactivate_admin(user_data["id"], user_id)
