"""
Exceptions for tenant resolution and cross-tenant checks.
"""

from app.core.errors import AuthorizationError, NotFoundError


class TenantNotFound(NotFoundError):
    """Raised when a tenant or a resource inside that tenant does not exist."""

    code = "tenant_not_found"
    default_message = "Tenant not found"


class TenantInactive(AuthorizationError):
    """Raised when the tenant exists but has been deactivated."""

    code = "tenant_inactive"
    default_message = "Tenant is not active"


class TenantMismatch(AuthorizationError):
    """Raised when a token issued for one tenant is presented against another."""

    code = "tenant_mismatch"
    default_message = "Tenant mismatch"
