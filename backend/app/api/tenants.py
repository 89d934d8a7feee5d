# Public tenant endpoints: signup of a new organization and the branding
# lookup the login page uses before anyone is authenticated.

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.logging import get_structured_logger
from app.crud.tenants import create_tenant, find_tenant_by_slug
from app.schemas.tenants import (
    TenantCreate,
    TenantCreateResponse,
    TenantPublicRead,
    TenantSummary,
)
from app.tenancy.constants import TENANT_ROUTE_PREFIX

router = APIRouter(prefix="/tenants", tags=["tenants"])
logger = get_structured_logger("tenants")


@router.post("", response_model=TenantCreateResponse, status_code=status.HTTP_201_CREATED)
def create_tenant_endpoint(payload: TenantCreate, db: Session = Depends(get_db)):
    tenant = create_tenant(db, name=payload.name, slug=payload.slug, plan=payload.plan)
    logger.info(
        "tenant.created",
        extra={"tenant_id": tenant.id, "tenant_slug": tenant.slug, "plan": tenant.plan.value},
    )
    base = TENANT_ROUTE_PREFIX.format(tenant_slug=tenant.slug)
    return {
        "message": "Tenant created successfully",
        "tenant": TenantSummary.model_validate(tenant),
        "nextSteps": {
            "loginUrl": f"{base}/auth/login",
            "registerUrl": f"{base}/auth/register",
        },
    }


@router.get("/{slug}", response_model=TenantPublicRead)
def read_tenant_endpoint(slug: str, db: Session = Depends(get_db)):
    # Inactive tenants are still returned so the UI can explain why login fails.
    return find_tenant_by_slug(db, slug)
