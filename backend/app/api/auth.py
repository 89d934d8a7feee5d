# Tenant-scoped authentication endpoints.
# Responsibilities here:
#   - Register users into a tenant (seat limit enforced by the store)
#   - Login with lockout after repeated failures
#   - Rotate refresh tokens, logout, and the "who am I" profile
# Every route is mounted under /t/{tenant_slug}/auth; the tenant always comes
# from the URL, and for protected routes it must also match the token.

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import lockout
from app.core.config import settings
from app.core.db import get_db
from app.core.errors import AccountLocked, InvalidCredentials, NotFoundError, UserLimitReached
from app.core.events import record_security_event
from app.core.security import burn_password_check, verify_password
from app.core.tokens import (
    TokenPair,
    issue_token_pair,
    refresh_token_pair,
    revoke_all_refresh_tokens,
    revoke_refresh_token,
)
from app.crud.users import create_user, get_user_by_email, get_user_by_id, normalize_email
from app.models.enums import Capability, RoleEnum
from app.models.tenants import Tenant
from app.models.users import User
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    TokenPairResponse,
)
from app.schemas.tenants import TenantSummary
from app.schemas.users import UserRead
from app.tenancy.constants import TENANT_ROUTE_PREFIX
from app.tenancy.context import RequestContext
from app.tenancy.dependencies import auth_rate_limit, require_capability, resolve_tenant

router = APIRouter(prefix=f"{TENANT_ROUTE_PREFIX}/auth", tags=["auth"])


def _token_body(pair: TokenPair) -> dict:
    return {
        "accessToken": pair.access_token,
        "refreshToken": pair.refresh_token,
        "tokenType": pair.token_type,
    }


def _auth_body(message: str, user: User, pair: TokenPair) -> dict:
    return {"message": message, "user": UserRead.model_validate(user), **_token_body(pair)}


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(resolve_tenant),
):
    try:
        user = create_user(
            db,
            tenant.id,
            payload.email,
            payload.password,
            RoleEnum.USER,
            first_name=payload.first_name,
            last_name=payload.last_name,
            commit=False,
        )
    except UserLimitReached:
        record_security_event(
            db,
            tenant.id,
            "user_limit_reached",
            success=False,
            email=payload.email,
            request=request,
            details={"max_users": tenant.max_users},
        )
        raise

    # The user row and its first refresh token land in one commit.
    try:
        pair = issue_token_pair(db, user, commit=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    record_security_event(
        db, tenant.id, "register", success=True, user_id=user.id, email=user.email, request=request
    )
    return _auth_body("User registered successfully", user, pair)


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(resolve_tenant),
):
    email = normalize_email(payload.email)
    user = get_user_by_email(db, tenant.id, email)
    if user is None:
        burn_password_check(payload.password)
        record_security_event(
            db,
            tenant.id,
            "login",
            success=False,
            email=email,
            request=request,
            details={"reason": "unknown_email"},
        )
        raise InvalidCredentials()

    # A locked account is rejected before the password is looked at.
    if lockout.is_locked(user):
        record_security_event(
            db,
            tenant.id,
            "login_locked",
            success=False,
            user_id=user.id,
            email=email,
            request=request,
            details={"locked_until": user.locked_until.isoformat()},
        )
        raise AccountLocked()

    if not verify_password(payload.password, user.password_hash):
        attempts = lockout.record_failure(db, tenant.id, user.id)
        locked = attempts >= settings.MAX_FAILED_LOGIN_ATTEMPTS
        record_security_event(
            db,
            tenant.id,
            "account_locked" if locked else "login",
            success=False,
            user_id=user.id,
            email=email,
            request=request,
            details={"reason": "bad_password", "failed_attempts": attempts},
        )
        raise InvalidCredentials()

    if not user.is_active:
        record_security_event(
            db,
            tenant.id,
            "login",
            success=False,
            user_id=user.id,
            email=email,
            request=request,
            details={"reason": "inactive"},
        )
        raise InvalidCredentials()

    try:
        lockout.reset(db, tenant.id, user.id, commit=False)
        pair = issue_token_pair(db, user, commit=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    record_security_event(
        db, tenant.id, "login", success=True, user_id=user.id, email=email, request=request
    )
    return _auth_body("Login successful", user, pair)


@router.post("/refresh", response_model=TokenPairResponse)
def refresh(
    payload: RefreshRequest,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(resolve_tenant),
):
    pair = refresh_token_pair(db, payload.refresh_token, tenant.id, request=request)
    return _token_body(pair)


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    payload: Optional[LogoutRequest] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_capability(Capability.LOGOUT)),
):
    if payload is not None and payload.refresh_token:
        revoke_refresh_token(
            db, payload.refresh_token, tenant_id=ctx.tenant_id, user_id=ctx.user_id
        )
        scope = "single"
    else:
        revoke_all_refresh_tokens(db, ctx.user_id, ctx.tenant_id)
        scope = "all"
    record_security_event(
        db,
        ctx.tenant_id,
        "logout",
        success=True,
        user_id=ctx.user_id,
        email=ctx.email,
        request=request,
        details={"scope": scope},
    )
    return {"message": "Logout successful"}


@router.api_route("/me", methods=["GET", "POST"], response_model=ProfileResponse)
def me(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(resolve_tenant),
    ctx: RequestContext = Depends(require_capability(Capability.VIEW_PROFILE)),
):
    user = get_user_by_id(db, ctx.tenant_id, ctx.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return {"user": UserRead.model_validate(user), "tenant": TenantSummary.model_validate(tenant)}
