from .audit import create_audit_log, list_audit_logs
from .tenants import (
    can_accept_new_user,
    count_users,
    create_tenant,
    deactivate_tenant,
    find_tenant_by_slug,
    get_tenant_by_id,
    get_tenant_by_slug,
    update_tenant,
)
from .users import (
    create_user,
    get_user_by_email,
    get_user_by_id,
    list_users,
    set_user_active,
    update_user_role,
)

__all__ = [
    "create_audit_log",
    "list_audit_logs",
    "can_accept_new_user",
    "count_users",
    "create_tenant",
    "deactivate_tenant",
    "find_tenant_by_slug",
    "get_tenant_by_id",
    "get_tenant_by_slug",
    "update_tenant",
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "list_users",
    "set_user_active",
    "update_user_role",
]
