"""
FastAPI dependency helpers for tenant resolution and request admission.

Protected routes go through, in order: slug resolution (tenant exists and is
active), bearer token verification, token tenant == URL tenant, capability
check. Each step has its own error kind so that a foreign-tenant token (403)
is distinguishable from a missing or bad one (401).
"""

from typing import Optional
from uuid import uuid4

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.errors import Forbidden, InvalidToken, RateLimited
from app.core.events import record_security_event
from app.core.tokens import verify_access_token
from app.crud.tenants import find_tenant_by_slug
from app.models.enums import Capability
from app.models.tenants import Tenant
from app.tenancy.context import RequestContext, TokenClaims
from app.tenancy.errors import TenantInactive, TenantMismatch
from app.tenancy.permissions import role_grants


def resolve_tenant(tenant_slug: str, db: Session = Depends(get_db)) -> Tenant:
    tenant = find_tenant_by_slug(db, tenant_slug)
    if not tenant.is_active:
        raise TenantInactive()
    return tenant


def _bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_access_claims(request: Request) -> TokenClaims:
    token = _bearer_token(request)
    if token is None:
        raise InvalidToken("Access token required")
    return verify_access_token(token)


def require_tenant_context(
    request: Request,
    tenant: Tenant = Depends(resolve_tenant),
    claims: TokenClaims = Depends(get_access_claims),
    db: Session = Depends(get_db),
) -> RequestContext:
    """
    Admit the request only if the verified token belongs to the URL tenant.
    """
    if claims.tenant_id != tenant.id:
        record_security_event(
            db,
            tenant.id,
            "tenant_mismatch",
            success=False,
            user_id=claims.user_id,
            email=claims.email,
            request=request,
            details={"token_tenant_id": claims.tenant_id, "path": request.url.path},
        )
        raise TenantMismatch()
    request_id = getattr(request.state, "request_id", None) or str(uuid4())
    return RequestContext(
        request_id=request_id,
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        user_id=claims.user_id,
        email=claims.email,
        role=claims.role,
        jti=claims.jti,
    )


def require_capability(capability: Capability):
    """
    Dependency enforcing that the caller's role grants ``capability``.
    """

    def dependency(ctx: RequestContext = Depends(require_tenant_context)) -> RequestContext:
        if not role_grants(ctx.role, capability):
            raise Forbidden()
        return ctx

    dependency.required_capability = capability
    return dependency


def auth_rate_limit(request: Request, tenant_slug: str) -> None:
    """
    Best-effort throttle for the unauthenticated auth endpoints, keyed by
    client, tenant and route.
    """
    if not settings.AUTH_RATE_LIMIT_ENABLED:
        return
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    client_ip = getattr(request.state, "client_ip", None) or (
        request.client.host if request.client else "unknown"
    )
    key = f"{client_ip}:{tenant_slug}:{request.url.path}"
    allowed, retry_after = limiter.allow(key)
    if not allowed:
        raise RateLimited(retry_after)
