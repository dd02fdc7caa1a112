from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.config.permissions_config import PermissionCategory

ROLE_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"


class Permission(BaseModel):
    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    category: PermissionCategory
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        frozen = True


class PermissionUpdate(BaseModel):
    display_name: Optional[str] = None
    description: Optional[str] = None


class Role(BaseModel):
    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    is_system_role: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        frozen = True


class RoleWithPermissionsResponse(BaseModel):
    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    is_system_role: bool = False
    permissions: List[Permission]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoleCreate(BaseModel):
    name: str = Field(pattern=ROLE_NAME_PATTERN, max_length=64)
    display_name: str = Field(min_length=1)
    description: Optional[str] = None
    permission_ids: List[str] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, pattern=ROLE_NAME_PATTERN, max_length=64)
    display_name: Optional[str] = None
    description: Optional[str] = None


class RolePermissionsUpdate(BaseModel):
    permission_ids: List[str]


class RolePermissionsUpdateResponse(BaseModel):
    role_id: str
    assigned_count: int
    message: str


class PermissionCategoryInfo(BaseModel):
    category: PermissionCategory
    label: str
