from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models.enums import RoleEnum


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: RoleEnum
    is_active: bool
    email_verified: bool
    created_at: datetime


class UserListResponse(BaseModel):
    users: list[UserRead]
    limit: int
    offset: int
    total: int


class RoleUpdate(BaseModel):
    # Plain string so unknown roles reach the store and come back as invalid_role.
    role: str


class RoleUpdateResponse(BaseModel):
    message: str
    user: UserRead
