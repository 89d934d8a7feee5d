# Tenant user administration. Admin-only; every query is scoped to the tenant
# of the verified token, which has already been matched against the URL.

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.errors import NotFoundError
from app.core.events import record_security_event
from app.crud.tenants import count_users
from app.crud.users import MAX_LIST_LIMIT, get_user_by_id, list_users, normalize_role, update_user_role
from app.models.enums import Capability
from app.schemas.users import RoleUpdate, RoleUpdateResponse, UserListResponse, UserRead
from app.tenancy.constants import TENANT_ROUTE_PREFIX
from app.tenancy.context import RequestContext
from app.tenancy.dependencies import require_capability

router = APIRouter(prefix=f"{TENANT_ROUTE_PREFIX}/users", tags=["users"])


@router.get("", response_model=UserListResponse)
def list_users_endpoint(
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_capability(Capability.LIST_USERS)),
):
    effective_limit = min(limit, MAX_LIST_LIMIT)
    users = list_users(db, ctx.tenant_id, limit=effective_limit, offset=offset)
    return {
        "users": [UserRead.model_validate(user) for user in users],
        "limit": effective_limit,
        "offset": offset,
        "total": count_users(db, ctx.tenant_id),
    }


@router.patch("/{user_id}/role", response_model=RoleUpdateResponse)
def update_role_endpoint(
    user_id: int,
    payload: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_capability(Capability.MANAGE_ROLES)),
):
    new_role = normalize_role(payload.role)
    target = get_user_by_id(db, ctx.tenant_id, user_id)
    if target is None:
        raise NotFoundError("User not found")
    previous_role = target.role
    user = update_user_role(db, ctx.tenant_id, user_id, new_role)
    record_security_event(
        db,
        ctx.tenant_id,
        "role_changed",
        success=True,
        user_id=ctx.user_id,
        email=ctx.email,
        request=request,
        details={
            "target_user_id": user.id,
            "from": previous_role.value,
            "to": user.role.value,
        },
    )
    return {"message": "User role updated successfully", "user": UserRead.model_validate(user)}
