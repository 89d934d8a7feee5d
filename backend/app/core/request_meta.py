"""
Per-request metadata attached by RequestContextMiddleware and copied into
security log entries and audit rows.
"""

from __future__ import annotations

import re
from uuid import uuid4

from fastapi import Request

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128
MAX_USER_AGENT_LENGTH = 512

_TENANT_PATH_RE = re.compile(r"^/t/([^/]+)/")


def tenant_slug_from_path(path: str | None) -> str | None:
    match = _TENANT_PATH_RE.match(path or "")
    return match.group(1) if match else None


def request_id_for(request: Request) -> str:
    # Client-supplied ids are echoed back in a header, so only short printable ones are kept.
    supplied = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if supplied and len(supplied) <= MAX_REQUEST_ID_LENGTH and supplied.isprintable():
        return supplied
    return str(uuid4())


def build_request_meta(
    request: Request,
    *,
    request_id: str,
    client_ip: str | None,
) -> dict[str, str | None]:
    user_agent = request.headers.get("User-Agent")
    return {
        "request_id": request_id,
        "client_ip": client_ip,
        "user_agent": user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
        "method": request.method,
        "path": request.url.path,
        "tenant_slug": tenant_slug_from_path(request.url.path),
    }


def resolve_request_meta(
    request: Request | None = None,
    request_meta: dict[str, str | None] | None = None,
) -> dict[str, str | None] | None:
    """Explicit metadata wins; otherwise use what the middleware stored on the request."""
    if request_meta is not None:
        return request_meta
    if request is None:
        return None
    return getattr(request.state, "request_meta", None)
