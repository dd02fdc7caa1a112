from pydantic import BaseModel, EmailStr
from typing import List, Optional

from app.modules.roles.schemas import Permission, Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str


class CurrentUserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    is_super_admin: bool
    roles: List[Role]
    permissions: List[Permission]
