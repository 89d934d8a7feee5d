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
from sqlalchemy import update  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.core.errors import InvalidToken, ValidationError  # noqa: E402
from app.core.security import decode_token, encode_token  # noqa: E402
from app.core.time import utcnow  # noqa: E402
from app.core.tokens import (  # noqa: E402
    hash_token,
    issue_token_pair,
    purge_expired_refresh_tokens,
    refresh_token_pair,
    revoke_all_refresh_tokens,
    revoke_refresh_token,
    verify_access_token,
    verify_refresh_token,
)
from app.crud.users import set_user_active  # noqa: E402
from app.models.audit_logs import AuditLog  # noqa: E402
from app.models.enums import RoleEnum  # noqa: E402
from app.models.refresh_tokens import RefreshToken  # noqa: E402
from app.tenancy.errors import TenantMismatch  # noqa: E402
from tests.factories import make_session_factory, make_tenant, make_user  # noqa: E402


@pytest.fixture
def session_factory(tmp_path):
    engine, factory = make_session_factory(tmp_path, "tokens.db")
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


def test_issue_pair_persists_only_a_hash(db_session):
    tenant = make_tenant(db_session)
    user = make_user(db_session, tenant, role=RoleEnum.VIEWER)
    pair = issue_token_pair(db_session, user)

    record = db_session.query(RefreshToken).one()
    assert record.token_hash == hash_token(pair.refresh_token)
    assert record.token_hash != pair.refresh_token
    assert record.tenant_id == tenant.id
    assert record.user_id == user.id
    assert record.expires_at > utcnow() + timedelta(days=6)

    claims = verify_access_token(pair.access_token)
    assert claims.user_id == user.id
    assert claims.tenant_id == tenant.id
    assert claims.role == RoleEnum.VIEWER
    assert claims.jti != verify_refresh_token(pair.refresh_token).jti


def test_access_and_refresh_use_independent_secrets(db_session):
    tenant = make_tenant(db_session)
    pair = issue_token_pair(db_session, make_user(db_session, tenant))

    with pytest.raises(InvalidToken):
        verify_refresh_token(pair.access_token)
    with pytest.raises(InvalidToken):
        verify_access_token(pair.refresh_token)

    access_payload = decode_token(pair.access_token, settings.JWT_ACCESS_SECRET)
    assert {"userId", "tenantId", "email", "role", "jti", "exp"}.issubset(access_payload)
    assert access_payload["exp"] - access_payload["iat"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def test_expired_access_token_is_rejected():
    token = encode_token(
        {"userId": 1, "tenantId": "t", "email": "a@b.c", "role": "user", "jti": "x", "typ": "access"},
        settings.JWT_ACCESS_SECRET,
        timedelta(seconds=-5),
    )
    with pytest.raises(InvalidToken):
        verify_access_token(token)


def test_access_token_with_unknown_role_is_rejected():
    token = encode_token(
        {"userId": 1, "tenantId": "t", "email": "a@b.c", "role": "owner", "jti": "x", "typ": "access"},
        settings.JWT_ACCESS_SECRET,
        timedelta(minutes=5),
    )
    with pytest.raises(InvalidToken):
        verify_access_token(token)


def test_refresh_rotates_and_rejects_replay(db_session):
    tenant = make_tenant(db_session)
    user = make_user(db_session, tenant)
    pair = issue_token_pair(db_session, user)

    rotated = refresh_token_pair(db_session, pair.refresh_token, tenant.id)
    assert rotated.refresh_token != pair.refresh_token
    assert db_session.query(RefreshToken).count() == 1

    with pytest.raises(InvalidToken):
        refresh_token_pair(db_session, pair.refresh_token, tenant.id)

    events = [row.event for row in db_session.query(AuditLog).order_by(AuditLog.id)]
    assert events == ["refresh", "refresh_rejected"]


def test_refresh_requires_a_token(db_session):
    tenant = make_tenant(db_session)
    with pytest.raises(ValidationError):
        refresh_token_pair(db_session, None, tenant.id)


def test_expired_record_is_rejected_even_if_present(db_session):
    tenant = make_tenant(db_session)
    pair = issue_token_pair(db_session, make_user(db_session, tenant))
    db_session.execute(update(RefreshToken).values(expires_at=utcnow() - timedelta(seconds=1)))
    db_session.commit()

    with pytest.raises(InvalidToken):
        refresh_token_pair(db_session, pair.refresh_token, tenant.id)
    assert purge_expired_refresh_tokens(db_session) == 1


def test_refresh_against_other_tenant_is_a_mismatch(db_session):
    home = make_tenant(db_session)
    other = make_tenant(db_session)
    pair = issue_token_pair(db_session, make_user(db_session, home))

    with pytest.raises(TenantMismatch):
        refresh_token_pair(db_session, pair.refresh_token, other.id)

    audit = db_session.query(AuditLog).filter(AuditLog.event == "tenant_mismatch").one()
    assert audit.tenant_id == other.id
    assert audit.details["token_tenant_id"] == home.id
    # Still usable at home.
    refresh_token_pair(db_session, pair.refresh_token, home.id)


def test_refresh_for_deactivated_user_fails(db_session):
    tenant = make_tenant(db_session)
    user = make_user(db_session, tenant)
    pair = issue_token_pair(db_session, user)
    set_user_active(db_session, tenant.id, user.id, False)

    with pytest.raises(InvalidToken):
        refresh_token_pair(db_session, pair.refresh_token, tenant.id)


def test_revoke_is_idempotent_and_scoped(db_session):
    tenant = make_tenant(db_session)
    other = make_tenant(db_session)
    user = make_user(db_session, tenant)
    pair = issue_token_pair(db_session, user)

    assert revoke_refresh_token(db_session, pair.refresh_token, tenant_id=other.id) is False
    assert revoke_refresh_token(db_session, pair.refresh_token, tenant_id=tenant.id) is True
    assert revoke_refresh_token(db_session, pair.refresh_token, tenant_id=tenant.id) is False


def test_revoke_all_only_touches_one_user_in_one_tenant(db_session):
    tenant = make_tenant(db_session)
    user = make_user(db_session, tenant)
    bystander = make_user(db_session, tenant)
    for _ in range(3):
        issue_token_pair(db_session, user)
    issue_token_pair(db_session, bystander)

    assert revoke_all_refresh_tokens(db_session, user.id, tenant.id) == 3
    remaining = db_session.query(RefreshToken).all()
    assert [row.user_id for row in remaining] == [bystander.id]


def test_concurrent_refresh_mints_at_most_one_successor(session_factory):
    with session_factory() as db:
        tenant = make_tenant(db)
        pair = issue_token_pair(db, make_user(db, tenant))
        tenant_id = tenant.id

    results = []
    barrier = threading.Barrier(6)

    def attempt():
        with session_factory() as db:
            barrier.wait()
            try:
                refresh_token_pair(db, pair.refresh_token, tenant_id)
                results.append("ok")
            except InvalidToken:
                results.append("rejected")

    threads = [threading.Thread(target=attempt) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count("ok") == 1
    assert results.count("rejected") == 5
    with session_factory() as db:
        assert db.query(RefreshToken).count() == 1
