"""
Role to capability grants.

Routes declare the capability they need instead of listing roles, so adding a
role means deciding its grants here once.
"""

from app.models.enums import Capability, RoleEnum

ROLE_CAPABILITIES: dict[RoleEnum, frozenset[Capability]] = {
    RoleEnum.ADMIN: frozenset(Capability),
    RoleEnum.USER: frozenset({Capability.VIEW_PROFILE, Capability.LOGOUT}),
    RoleEnum.VIEWER: frozenset({Capability.VIEW_PROFILE, Capability.LOGOUT}),
}

_missing = set(RoleEnum) - set(ROLE_CAPABILITIES)
if _missing:
    raise RuntimeError(f"No capability grants defined for roles: {sorted(r.value for r in _missing)}")


def role_grants(role: RoleEnum | str | None, capability: Capability) -> bool:
    if role is None:
        return False
    try:
        resolved = role if isinstance(role, RoleEnum) else RoleEnum(role)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES[resolved]
