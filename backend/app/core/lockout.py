"""
Consecutive failed-login tracking and account lock windows.

Counters are changed with single UPDATE statements scoped by (tenant, user)
so a burst of concurrent failures cannot lose increments.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.time import utcnow
from app.models.users import User


def is_locked(user: User, now: datetime | None = None) -> bool:
    locked_until = getattr(user, "locked_until", None)
    if locked_until is None:
        return False
    return locked_until > (now or utcnow())


def record_failure(db: Session, tenant_id: str, user_id: int) -> int:
    """
    Increment the failure counter and lock the account once it reaches the
    configured threshold. Returns the new counter value.
    """
    lock_until = utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES)
    next_attempts = User.failed_login_attempts + 1
    scope = (User.id == user_id, User.tenant_id == tenant_id)
    db.execute(
        update(User)
        .where(*scope)
        .values(
            failed_login_attempts=next_attempts,
            locked_until=case(
                (next_attempts >= settings.MAX_FAILED_LOGIN_ATTEMPTS, lock_until),
                else_=User.locked_until,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    # Still inside the writing transaction, so this reads our own increment.
    attempts = db.execute(select(User.failed_login_attempts).where(*scope)).scalar()
    db.commit()
    return int(attempts or 0)


def reset(db: Session, tenant_id: str, user_id: int, *, commit: bool = True) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id, User.tenant_id == tenant_id)
        .values(failed_login_attempts=0, locked_until=None)
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
