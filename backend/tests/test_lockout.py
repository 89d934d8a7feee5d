import os

# Ensure required settings exist before imports.
os.environ.setdefault("SKIP_MIGRATIONS", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import threading  # noqa: E402
from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402

from app.core import lockout  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.time import utcnow  # noqa: E402
from app.crud.users import get_user_by_id  # noqa: E402
from tests.factories import make_session_factory, make_tenant, make_user  # noqa: E402


@pytest.fixture
def session_factory(tmp_path):
    engine, factory = make_session_factory(tmp_path, "lockout.db")
    yield factory
    engine.dispose()


def _fresh(factory, tenant_id, user_id):
    with factory() as db:
        return get_user_by_id(db, tenant_id, user_id)


def test_lock_applies_on_threshold(session_factory):
    with session_factory() as db:
        tenant = make_tenant(db)
        user = make_user(db, tenant)
        tenant_id, user_id = tenant.id, user.id

        counts = [lockout.record_failure(db, tenant_id, user_id) for _ in range(4)]
        assert counts == [1, 2, 3, 4]
        assert not lockout.is_locked(_fresh(session_factory, tenant_id, user_id))

        assert lockout.record_failure(db, tenant_id, user_id) == settings.MAX_FAILED_LOGIN_ATTEMPTS

    locked = _fresh(session_factory, tenant_id, user_id)
    assert lockout.is_locked(locked)
    window = locked.locked_until - utcnow()
    assert timedelta(minutes=14) < window <= timedelta(minutes=settings.LOCKOUT_MINUTES)
    assert not lockout.is_locked(locked, now=utcnow() + timedelta(minutes=16))


def test_reset_clears_counter_and_lock(session_factory):
    with session_factory() as db:
        tenant = make_tenant(db)
        user = make_user(db, tenant)
        for _ in range(5):
            lockout.record_failure(db, tenant.id, user.id)
        lockout.reset(db, tenant.id, user.id)
        tenant_id, user_id = tenant.id, user.id

    user = _fresh(session_factory, tenant_id, user_id)
    assert user.failed_login_attempts == 0
    assert user.locked_until is None


def test_record_failure_is_scoped_by_tenant(session_factory):
    with session_factory() as db:
        tenant = make_tenant(db)
        other = make_tenant(db)
        user = make_user(db, tenant)
        assert lockout.record_failure(db, other.id, user.id) == 0
        tenant_id, user_id = tenant.id, user.id
    assert _fresh(session_factory, tenant_id, user_id).failed_login_attempts == 0


def test_concurrent_failures_are_not_lost(session_factory):
    with session_factory() as db:
        tenant = make_tenant(db)
        user = make_user(db, tenant)
        tenant_id, user_id = tenant.id, user.id

    barrier = threading.Barrier(8)

    def fail_once():
        with session_factory() as db:
            barrier.wait()
            lockout.record_failure(db, tenant_id, user_id)

    threads = [threading.Thread(target=fail_once) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    user = _fresh(session_factory, tenant_id, user_id)
    assert user.failed_login_attempts == 8
    assert lockout.is_locked(user)
