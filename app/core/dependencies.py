"""
Core dependencies for route protection and permission checking
"""

from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from supabase import Client
from typing import Any, Dict, FrozenSet, Union
import logging

from app.config import settings
from app.config.permissions_config import PermissionName
from app.core.exceptions import NotAuthorized
from app.database.identity_store import IdentityStore, SupabaseIdentityStore
from app.database.store import RecordStore, SupabaseRecordStore
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.access.service import PermissionResolver
from app.modules.admins.service import AdminLifecycleManager
from app.modules.auth.service import AuthService
from app.modules.roles.service import PermissionService, RoleService

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for the caller's access data (permission names, super-admin flag)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_record_store(supabase: Client = Depends(get_service_supabase)) -> RecordStore:
    return SupabaseRecordStore(supabase)


def get_identity_store(supabase: Client = Depends(get_service_supabase)) -> IdentityStore:
    return SupabaseIdentityStore(supabase, ban_duration=settings.deactivation_ban_duration)


def get_resolver(store: RecordStore = Depends(get_record_store)) -> PermissionResolver:
    return PermissionResolver(store)


def get_role_service(store: RecordStore = Depends(get_record_store)) -> RoleService:
    return RoleService(store)


def get_permission_service(store: RecordStore = Depends(get_record_store)) -> PermissionService:
    return PermissionService(store)


def get_lifecycle_manager(
    store: RecordStore = Depends(get_record_store),
    identities: IdentityStore = Depends(get_identity_store),
    resolver: PermissionResolver = Depends(get_resolver)
) -> AdminLifecycleManager:
    return AdminLifecycleManager(
        store,
        identities,
        resolver,
        enforce_nonempty_permissions=settings.enforce_nonempty_permissions
    )


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    return auth_service.get_current_user(token)


def get_caller_permissions(
    request: Request,
    user_data: dict = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_resolver)
) -> FrozenSet[str]:
    """Effective permission names of the caller, resolved once per request."""
    cache = _get_request_cache(request)
    if "permission_names" not in cache:
        cache["permission_names"] = resolver.resolve_names(user_data["id"])
    return cache["permission_names"]


def require_permission(required_permission: Union[PermissionName, str]):
    """Factory function to create permission check dependency"""
    # Unknown names fail here, when the route module is imported
    permission = PermissionName(required_permission)

    def check_permission(
        user_data: dict = Depends(get_current_user),
        permissions: FrozenSet[str] = Depends(get_caller_permissions)
    ) -> dict:
        """Dependency to check if user has required permission"""
        if permission.value not in permissions:
            logger.info(f"User {user_data['id']} denied: missing {permission.value}")
            raise NotAuthorized(f"Insufficient permissions. Required: {permission.value}")
        return user_data
    return check_permission


def require_super_admin(
    request: Request,
    user_data: dict = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_resolver)
) -> dict:
    """Coarse gate for operations that are deliberately not ordinary permissions"""
    cache = _get_request_cache(request)
    if "is_super_admin" not in cache:
        cache["is_super_admin"] = resolver.is_super_admin(user_data["id"])
    if not cache["is_super_admin"]:
        raise NotAuthorized("Super administrator role required")
    return user_data


def require_admin(
    user_data: dict = Depends(get_current_user),
    permissions: FrozenSet[str] = Depends(get_caller_permissions)
) -> dict:
    """Any caller holding at least one admin permission"""
    if not permissions:
        raise NotAuthorized("Administrator access required")
    return user_data
