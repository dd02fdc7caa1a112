from fastapi import APIRouter, Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.modules.auth.schemas import LoginRequest, TokenResponse, CurrentUserResponse
from app.modules.auth.service import AuthService
from app.modules.access.service import PermissionResolver
from app.core.dependencies import get_auth_service, get_current_user, get_resolver
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])

# Security scheme for JWT Bearer token
security = HTTPBearer()


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    return credentials.credentials


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token"""
    return service.login(login_data)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and invalidate token"""
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(
    current_user: Dict = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_resolver)
):
    """Get current authenticated user with roles and effective permissions (for frontend UI)."""
    user_id = current_user["id"]
    roles = sorted(resolver.get_user_roles(user_id), key=lambda role: role.display_name)
    return CurrentUserResponse(
        id=user_id,
        email=current_user.get("email"),
        name=(current_user.get("user_metadata") or {}).get("name"),
        is_super_admin=any(role.name == resolver.super_admin_role for role in roles),
        roles=roles,
        permissions=resolver.resolve_sorted(user_id)
    )
