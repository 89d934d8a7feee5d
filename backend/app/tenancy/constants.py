"""
Constants for tenancy concerns.
"""

# Slug rule: lowercase letters, digits and hyphens, 3 to 50 characters.
SLUG_PATTERN = r"^[a-z0-9-]+$"
SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 50

# URL prefix for tenant-scoped routes, e.g. /t/acme/auth/login.
TENANT_ROUTE_PREFIX = "/t/{tenant_slug}"
