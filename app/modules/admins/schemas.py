from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime

from app.modules.roles.schemas import Permission, Role


class AdminCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role_ids: List[str] = []
    permission_ids: List[str] = []


class SuperAdminBootstrap(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)


class AdminRolesUpdate(BaseModel):
    role_ids: List[str]


class AdminPermissionsUpdate(BaseModel):
    permission_ids: List[str]


class AdminUser(BaseModel):
    """Identity joined with its active roles and effective permissions."""
    id: str
    email: str
    name: str
    account_type: str
    status: str
    roles: List[Role]
    permissions: List[Permission]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
