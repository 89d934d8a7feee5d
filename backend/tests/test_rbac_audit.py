import os

# Ensure required settings exist before imports.
os.environ.setdefault("SKIP_MIGRATIONS", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from fastapi import APIRouter, Depends, FastAPI  # noqa: E402

from app.models.enums import Capability  # noqa: E402
from app.tenancy.dependencies import require_capability  # noqa: E402
from rbac_audit import find_unguarded_routes, main, route_capabilities  # noqa: E402


def test_protected_routes_declare_a_capability():
    missing = find_unguarded_routes()
    assert not missing, f"Routes without a capability requirement: {missing}"


def test_rbac_audit_main_reports_success(capsys):
    assert main() == 0
    assert "every protected endpoint" in capsys.readouterr().out


def test_route_capabilities_reflect_role_grants():
    table = route_capabilities()
    assert table[("/t/{tenant_slug}/users", "GET")] == {"list_users"}
    assert table[("/t/{tenant_slug}/users/{user_id}/role", "PATCH")] == {"manage_roles"}
    assert table[("/t/{tenant_slug}/auth/me", "GET")] == {"view_profile"}
    assert table[("/t/{tenant_slug}/auth/logout", "POST")] == {"logout"}
    assert table[("/t/{tenant_slug}/auth/login", "POST")] == set()
    assert len(table) >= 10


def _nested_app() -> FastAPI:
    inner = APIRouter(prefix="/users")

    @inner.get("")
    def listing(ctx=Depends(require_capability(Capability.LIST_USERS))):
        return []

    @inner.delete("/{user_id}")
    def forgotten(user_id: int):
        return None

    outer = APIRouter(prefix="/t/{tenant_slug}")
    outer.include_router(inner)
    application = FastAPI()
    application.include_router(outer)
    return application


def test_audit_sees_routes_of_nested_routers():
    application = _nested_app()
    table = route_capabilities(application)
    assert table[("/t/{tenant_slug}/users", "GET")] == {"list_users"}
    assert find_unguarded_routes(application) == [("/t/{tenant_slug}/users/{user_id}", "DELETE")]
    assert main(application) == 1


def test_audit_fails_when_no_tenant_routes_are_found(capsys):
    application = FastAPI()

    @application.get("/ping")
    def ping():
        return {"ok": True}

    assert find_unguarded_routes(application) == []
    assert main(application) == 1
    assert "no tenant routes" in capsys.readouterr().out
