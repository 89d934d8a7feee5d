from .tenants import Tenant
from .users import User
from .refresh_tokens import RefreshToken
from .audit_logs import AuditLog
