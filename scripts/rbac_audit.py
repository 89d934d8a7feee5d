"""
List tenant routes that do not declare a required capability.

A route is guarded when anywhere in its dependency tree there is a callable
produced by ``require_capability`` (those carry ``required_capability``).
Exits 1 when an unguarded, non-public route is found, or when no tenant
route is found at all.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from fastapi import FastAPI
from fastapi.dependencies.models import Dependant
from fastapi.routing import APIRoute

from app.main import app
from app.tenancy.constants import TENANT_ROUTE_PREFIX

# Open to anonymous callers; everything else must name a capability.
PUBLIC_ROUTES = {
    ("/ping", "GET"),
    ("/tenants", "POST"),
    ("/tenants/{slug}", "GET"),
    ("/t/{tenant_slug}/auth/register", "POST"),
    ("/t/{tenant_slug}/auth/login", "POST"),
    # Authenticated by the refresh token in the body, not a bearer token.
    ("/t/{tenant_slug}/auth/refresh", "POST"),
}


def _capabilities(dependant: Dependant) -> set[str]:
    found = set()
    for dep in dependant.dependencies:
        capability = getattr(dep.call, "required_capability", None)
        if capability is not None:
            found.add(getattr(capability, "value", str(capability)))
        found |= _capabilities(dep)
    return found


def _api_routes(routes: Iterable, prefix: str = "") -> Iterator[tuple[str, APIRoute]]:
    # Older FastAPI copies included routes onto the app; newer releases keep
    # a wrapper that points at the original router and its include prefix.
    for route in routes:
        if isinstance(route, APIRoute):
            yield prefix + route.path, route
            continue
        included = getattr(route, "original_router", None)
        if included is not None:
            context = getattr(route, "include_context", None)
            yield from _api_routes(included.routes, prefix + getattr(context, "prefix", ""))
        elif hasattr(route, "routes"):
            yield from _api_routes(route.routes, prefix + getattr(route, "path", ""))


def route_capabilities(application: FastAPI = app) -> dict[tuple[str, str], set[str]]:
    table = {}
    for path, route in _api_routes(application.routes):
        capabilities = _capabilities(route.dependant)
        for method in route.methods or ():
            if method in {"HEAD", "OPTIONS"}:
                continue
            table[(path, method)] = capabilities
    return table


def find_unguarded_routes(application: FastAPI = app) -> list[tuple[str, str]]:
    return sorted(
        key
        for key, capabilities in route_capabilities(application).items()
        if not capabilities and key not in PUBLIC_ROUTES
    )


def main(application: FastAPI = app) -> int:
    table = route_capabilities(application)
    if not any(path.startswith(TENANT_ROUTE_PREFIX) for path, _method in table):
        print("RBAC audit: no tenant routes found; nothing was checked")
        return 1

    issues = find_unguarded_routes(application)
    if issues:
        print("RBAC audit: endpoints missing a capability requirement")
        for path, method in issues:
            print(f"- {method} {path}")
        return 1

    print("RBAC audit: every protected endpoint declares a capability.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
