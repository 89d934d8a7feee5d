"""
Request-scoped identity for a request admitted through the tenancy guard.
"""

from dataclasses import dataclass
from typing import Optional

from app.models.enums import RoleEnum


@dataclass(frozen=True)
class TokenClaims:
    """Verified access/refresh token claims."""

    user_id: int
    tenant_id: str
    email: str
    role: RoleEnum
    jti: str
    exp: int


@dataclass
class RequestContext:
    """
    Captures the resolved tenant and the authenticated caller for downstream
    handlers. Only built once the token tenant matched the URL tenant.
    """

    request_id: str
    tenant_id: str
    tenant_slug: str
    user_id: int
    email: str
    role: RoleEnum
    jti: Optional[str] = None
