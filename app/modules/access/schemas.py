from pydantic import BaseModel
from typing import List

from app.modules.roles.schemas import Permission, Role


class UserPermissionsResponse(BaseModel):
    user_id: str
    is_super_admin: bool
    roles: List[Role]
    permissions: List[Permission]


class PermissionCheckResponse(BaseModel):
    user_id: str
    permission: str
    allowed: bool
