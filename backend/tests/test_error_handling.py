import os

# Ensure required settings exist before imports.
os.environ.setdefault("SKIP_MIGRATIONS", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402

import app.api.tenants as tenants_module  # noqa: E402
from app.core.errors import (  # noqa: E402
    AccountLocked,
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DuplicateEmail,
    Forbidden,
    InternalError,
    InvalidCredentials,
    InvalidSlug,
    InvalidToken,
    NotFoundError,
    RateLimited,
    SlugTaken,
    UserLimitReached,
    ValidationError,
)
from app.tenancy.errors import TenantInactive, TenantMismatch, TenantNotFound  # noqa: E402
from tests.factories import app_client  # noqa: E402


@pytest.mark.parametrize(
    "error_cls, status_code, base",
    [
        (ValidationError, 400, AppError),
        (InvalidSlug, 400, ValidationError),
        (AuthenticationError, 401, AppError),
        (InvalidCredentials, 401, AuthenticationError),
        (InvalidToken, 401, AuthenticationError),
        (AuthorizationError, 403, AppError),
        (Forbidden, 403, AuthorizationError),
        (UserLimitReached, 403, AuthorizationError),
        (TenantMismatch, 403, AuthorizationError),
        (TenantInactive, 403, AuthorizationError),
        (NotFoundError, 404, AppError),
        (TenantNotFound, 404, NotFoundError),
        (ConflictError, 409, AppError),
        (SlugTaken, 409, ConflictError),
        (DuplicateEmail, 409, ConflictError),
        (AccountLocked, 423, AppError),
        (InternalError, 500, AppError),
    ],
)
def test_error_kinds_map_to_status(error_cls, status_code, base):
    error = error_cls()
    assert error.status_code == status_code
    assert isinstance(error, base)
    payload = error.to_payload()
    assert payload["code"] == error.code
    assert payload["message"]


def test_rate_limited_carries_retry_after():
    error = RateLimited(7)
    assert error.status_code == 429
    assert error.to_payload()["retry_after"] == 7


def test_validation_errors_become_400(tmp_path):
    with app_client(tmp_path) as (client, _):
        resp = client.post("/tenants", json={"name": "No slug"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "validation_error"
    assert body["errors"][0]["loc"] == ["body", "slug"]
    assert resp.headers["X-Error-Code"] == "validation_error"


def test_invalid_slug_and_taken_slug(tmp_path):
    with app_client(tmp_path) as (client, _):
        resp = client.post("/tenants", json={"name": "Bad", "slug": "a_b"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_slug"

        # Slugs are normalized before validation.
        assert client.post("/tenants", json={"name": "Acme", "slug": " ACME "}).status_code == 201
        resp = client.post("/tenants", json={"name": "Acme 2", "slug": "acme"})
        assert resp.status_code == 409
        assert resp.json()["code"] == "slug_taken"
        assert resp.json()["slug"] == "acme"


def test_unknown_tenant_lookup_is_404(tmp_path):
    with app_client(tmp_path) as (client, _):
        resp = client.get("/tenants/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["code"] == "tenant_not_found"


def test_unknown_route_uses_error_envelope(tmp_path):
    with app_client(tmp_path) as (client, _):
        resp = client.get("/definitely/not/here")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_database_errors_become_internal_error(tmp_path, monkeypatch):
    def broken(*_args, **_kwargs):
        raise OperationalError("INSERT INTO tenants", {}, Exception("disk I/O error"))

    monkeypatch.setattr(tenants_module, "create_tenant", broken)
    with app_client(tmp_path) as (client, _):
        resp = client.post("/tenants", json={"name": "Acme", "slug": "acme"})
    assert resp.status_code == 500
    assert resp.json() == {"code": "internal_error", "message": "Internal server error"}
    assert "disk" not in resp.text


def test_unexpected_errors_do_not_leak(tmp_path, monkeypatch):
    def broken(*_args, **_kwargs):
        raise RuntimeError("secret internals")

    monkeypatch.setattr(tenants_module, "find_tenant_by_slug", broken)
    with app_client(tmp_path, raise_server_exceptions=False) as (client, _):
        resp = client.get("/tenants/acme")
    assert resp.status_code == 500
    assert resp.json()["code"] == "internal_error"
    assert "secret internals" not in resp.text
