import re

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import InvalidSlug, SlugTaken, ValidationError
from app.models.enums import PlanEnum
from app.models.tenants import Tenant
from app.models.users import User
from app.tenancy.constants import SLUG_MAX_LENGTH, SLUG_MIN_LENGTH, SLUG_PATTERN
from app.tenancy.errors import TenantNotFound

# Seats per plan, fixed at tenant creation (and on an explicit plan change).
PLAN_MAX_USERS = {
    PlanEnum.FREE: 10,
    PlanEnum.STARTER: 50,
    PlanEnum.PROFESSIONAL: 200,
    PlanEnum.ENTERPRISE: 1000,
}
DEFAULT_MAX_USERS = 10

_SLUG_RE = re.compile(SLUG_PATTERN)
_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


def validate_slug(slug: str | None) -> str:
    if not isinstance(slug, str):
        raise InvalidSlug()
    if not (SLUG_MIN_LENGTH <= len(slug) <= SLUG_MAX_LENGTH) or not _SLUG_RE.match(slug):
        raise InvalidSlug()
    return slug


def normalize_plan(plan: PlanEnum | str | None) -> PlanEnum:
    if plan is None:
        return PlanEnum.FREE
    if isinstance(plan, PlanEnum):
        return plan
    try:
        return PlanEnum(plan)
    except ValueError as exc:
        raise ValidationError("Invalid plan") from exc


def max_users_for_plan(plan: PlanEnum | str | None) -> int:
    try:
        return PLAN_MAX_USERS.get(normalize_plan(plan), DEFAULT_MAX_USERS)
    except ValidationError:
        return DEFAULT_MAX_USERS


def _validate_name(name: str | None) -> str:
    value = (name or "").strip()
    if not value or len(value) > 255:
        raise ValidationError("Tenant name must be 1-255 characters")
    return value


def _validate_color(value: str, field: str) -> str:
    if not _COLOR_RE.match(value):
        raise ValidationError(f"{field} must be a hex color like #1a2b3c")
    return value


def _slug_taken_message(slug: str) -> str:
    return f'The slug "{slug}" is already in use. Please choose another.'


def create_tenant(
    db: Session,
    name: str,
    slug: str,
    plan: PlanEnum | str | None = None,
) -> Tenant:
    validate_slug(slug)
    normalized_plan = normalize_plan(plan)
    # Friendly early answer; the unique index on slug is what actually decides.
    if get_tenant_by_slug(db, slug) is not None:
        raise SlugTaken(_slug_taken_message(slug), details={"slug": slug})
    tenant = Tenant(
        name=_validate_name(name),
        slug=slug,
        plan=normalized_plan,
        max_users=max_users_for_plan(normalized_plan),
        is_active=True,
    )
    db.add(tenant)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SlugTaken(_slug_taken_message(slug), details={"slug": slug}) from exc
    db.refresh(tenant)
    return tenant


def get_tenant_by_id(db: Session, tenant_id: str) -> Tenant | None:
    return db.query(Tenant).filter(Tenant.id == tenant_id).first()


def get_tenant_by_slug(db: Session, slug: str) -> Tenant | None:
    return db.query(Tenant).filter(Tenant.slug == slug).first()


def find_tenant_by_slug(db: Session, slug: str) -> Tenant:
    tenant = get_tenant_by_slug(db, slug)
    if tenant is None:
        raise TenantNotFound(details={"slug": slug})
    return tenant


def count_users(db: Session, tenant_id: str) -> int:
    return db.query(func.count(User.id)).filter(User.tenant_id == tenant_id).scalar() or 0


def can_accept_new_user(db: Session, tenant_id: str) -> bool:
    """
    Advisory read used for fast rejection. The binding check happens inside
    app.crud.users.create_user as part of the insert itself.
    """
    tenant = get_tenant_by_id(db, tenant_id)
    if tenant is None or not tenant.is_active:
        return False
    return count_users(db, tenant_id) < tenant.max_users


def deactivate_tenant(db: Session, tenant_id: str) -> bool:
    result = db.execute(
        update(Tenant).where(Tenant.id == tenant_id).values(is_active=False)
    )
    db.commit()
    return (result.rowcount or 0) > 0


def update_tenant(
    db: Session,
    tenant_id: str,
    *,
    name: str | None = None,
    logo_url: str | None = None,
    primary_color: str | None = None,
    secondary_color: str | None = None,
    plan: PlanEnum | str | None = None,
) -> Tenant | None:
    # Closed set of updatable fields; slug and id are immutable.
    tenant = get_tenant_by_id(db, tenant_id)
    if not tenant:
        return None
    if name is not None:
        tenant.name = _validate_name(name)
    if logo_url is not None:
        tenant.logo_url = logo_url.strip() or None
    if primary_color is not None:
        tenant.primary_color = _validate_color(primary_color, "primary_color")
    if secondary_color is not None:
        tenant.secondary_color = _validate_color(secondary_color, "secondary_color")
    if plan is not None:
        tenant.plan = normalize_plan(plan)
        tenant.max_users = max_users_for_plan(tenant.plan)
    db.commit()
    db.refresh(tenant)
    return tenant
