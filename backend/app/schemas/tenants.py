from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import PlanEnum


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str
    plan: Optional[PlanEnum] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, value: str) -> str:
        # Format rules are enforced by the tenant directory itself.
        return value.strip().lower()


class TenantSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    plan: PlanEnum
    max_users: int


class TenantNextSteps(BaseModel):
    loginUrl: str
    registerUrl: str


class TenantCreateResponse(BaseModel):
    message: str
    tenant: TenantSummary
    nextSteps: TenantNextSteps


class TenantPublicRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    logo_url: Optional[str] = None
    primary_color: str
    secondary_color: str
    is_active: bool
