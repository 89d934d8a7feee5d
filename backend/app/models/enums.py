from enum import Enum

# Stored as strings with DB check constraints (native enums disabled for easier evolution).


class RoleEnum(str, Enum):
    ADMIN = "admin"
    USER = "user"
    VIEWER = "viewer"


class PlanEnum(str, Enum):
    FREE = "free"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class Capability(str, Enum):
    VIEW_PROFILE = "view_profile"
    LOGOUT = "logout"
    LIST_USERS = "list_users"
    MANAGE_ROLES = "manage_roles"


def enum_values(enum_cls) -> list[str]:
    # Persist the lowercase values ("admin"), not the member names ("ADMIN").
    return [member.value for member in enum_cls]
