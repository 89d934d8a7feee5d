from sqlalchemy import Boolean, DateTime, Integer, String, func, insert, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import DuplicateEmail, InvalidRole, UserLimitReached, ValidationError
from app.core.security import BCRYPT_MAX_PASSWORD_BYTES, get_password_hash
from app.core.time import utcnow
from app.models.enums import RoleEnum
from app.models.tenants import Tenant
from app.models.users import ROLE_COLUMN_TYPE, User
from app.tenancy.scoping import get_tenant_owned_or_404, scoped_query

MAX_LIST_LIMIT = 100


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_role(role: RoleEnum | str) -> RoleEnum:
    if isinstance(role, RoleEnum):
        return role
    try:
        return RoleEnum(role)
    except ValueError as exc:
        raise InvalidRole(details={"allowed": [r.value for r in RoleEnum]}) from exc


def validate_password(password: str) -> str:
    if not isinstance(password, str) or len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
        )
    if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValidationError("Password must be at most 72 bytes")
    return password


def _seat_available(tenant_id: str):
    current = (
        select(func.count(User.id))
        .where(User.tenant_id == tenant_id)
        .scalar_subquery()
    )
    limit = (
        select(Tenant.max_users)
        .where(Tenant.id == tenant_id, Tenant.is_active.is_(True))
        .scalar_subquery()
    )
    return current < limit


def create_user(
    db: Session,
    tenant_id: str,
    email: str,
    password: str | None = None,
    role: RoleEnum | str = RoleEnum.USER,
    *,
    first_name: str | None = None,
    last_name: str | None = None,
    password_hash: str | None = None,
    commit: bool = True,
) -> User:
    """
    Create a user inside a tenant, enforcing the tenant's seat limit.

    The seat check and the insert are one statement, run while holding the
    tenant row lock, so concurrent registrations cannot overshoot max_users.
    Uniqueness of (tenant_id, email) is left to the database constraint.
    With commit=False the row is only written to the open transaction and
    the caller owns the commit.
    """
    normalized_role = normalize_role(role)
    normalized_email = normalize_email(email)
    if not normalized_email:
        raise ValidationError("Email is required")
    if password_hash is None:
        # Hash before taking any lock; bcrypt is deliberately slow.
        password_hash = get_password_hash(validate_password(password))

    now = utcnow()
    users = User.__table__
    try:
        # Row lock on Postgres, write lock on SQLite. Zero rows means the
        # tenant is missing or inactive.
        locked = db.execute(
            update(Tenant)
            .where(Tenant.id == tenant_id, Tenant.is_active.is_(True))
            .values(updated_at=Tenant.updated_at)
            .execution_options(synchronize_session=False)
        )
        if not locked.rowcount:
            db.rollback()
            raise UserLimitReached("Organization cannot accept new users")

        row = select(
            literal(tenant_id, String),
            literal(normalized_email, String),
            literal(password_hash, String),
            literal(first_name, String),
            literal(last_name, String),
            literal(normalized_role, ROLE_COLUMN_TYPE),
            literal(True, Boolean),
            literal(False, Boolean),
            literal(0, Integer),
            literal(now, DateTime),
            literal(now, DateTime),
        ).where(_seat_available(tenant_id))
        result = db.execute(
            insert(users).from_select(
                [
                    users.c.tenant_id,
                    users.c.email,
                    users.c.password_hash,
                    users.c.first_name,
                    users.c.last_name,
                    users.c.role,
                    users.c.is_active,
                    users.c.email_verified,
                    users.c.failed_login_attempts,
                    users.c.created_at,
                    users.c.updated_at,
                ],
                row,
            )
        )
        if not result.rowcount:
            db.rollback()
            raise UserLimitReached(
                "Your organization has reached its maximum user limit. "
                "Please upgrade your plan or contact support."
            )
        if commit:
            db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEmail() from exc

    return get_user_by_email(db, tenant_id, normalized_email)


def get_user_by_email(db: Session, tenant_id: str, email: str) -> User | None:
    # There is deliberately no cross-tenant variant of this lookup.
    return scoped_query(db, User, tenant_id, User.email == normalize_email(email)).first()


def get_user_by_id(db: Session, tenant_id: str, user_id: int) -> User | None:
    return scoped_query(db, User, tenant_id, User.id == user_id).first()


def list_users(db: Session, tenant_id: str, *, limit: int = 50, offset: int = 0) -> list[User]:
    limit = max(1, min(int(limit), MAX_LIST_LIMIT))
    offset = max(0, int(offset))
    return (
        scoped_query(db, User, tenant_id)
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


def update_user_role(db: Session, tenant_id: str, user_id: int, role: RoleEnum | str) -> User:
    normalized_role = normalize_role(role)
    user = get_tenant_owned_or_404(db, User, tenant_id, user_id, message="User not found")
    user.role = normalized_role
    db.commit()
    db.refresh(user)
    return user


def set_user_active(db: Session, tenant_id: str, user_id: int, is_active: bool) -> User:
    user = get_tenant_owned_or_404(db, User, tenant_id, user_id, message="User not found")
    user.is_active = bool(is_active)
    db.commit()
    db.refresh(user)
    return user
