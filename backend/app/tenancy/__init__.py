"Tenancy utilities: tenant resolution, request context, capabilities and scoping helpers."

from .constants import TENANT_ROUTE_PREFIX  # noqa: F401
from .context import RequestContext, TokenClaims  # noqa: F401
from .errors import TenantInactive, TenantMismatch, TenantNotFound  # noqa: F401
from .middleware import RequestContextMiddleware  # noqa: F401
