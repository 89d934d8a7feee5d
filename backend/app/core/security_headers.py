"""
Response hardening headers.

Responses from the tenant auth routes hold tokens and are marked
``Cache-Control: no-store``. HSTS is only sent over HTTPS.
"""

from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings


def _hsts_value() -> str:
    directives = [f"max-age={int(settings.HSTS_MAX_AGE)}"]
    if settings.HSTS_INCLUDE_SUBDOMAINS:
        directives.append("includeSubDomains")
    if settings.HSTS_PRELOAD:
        directives.append("preload")
    return "; ".join(directives)


def _carries_tokens(path: str) -> bool:
    parts = path.strip("/").split("/")
    return len(parts) >= 4 and parts[0] == "t" and parts[2] == "auth"


def _is_https(request: Request) -> bool:
    if request.url.scheme == "https":
        return True
    return request.headers.get("X-Forwarded-Proto", "").strip().lower() == "https"


def security_headers_for(request: Request) -> dict[str, str]:
    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": settings.X_FRAME_OPTIONS,
        "Referrer-Policy": settings.REFERRER_POLICY,
    }
    if settings.CSP_DEFAULT:
        headers["Content-Security-Policy"] = settings.CSP_DEFAULT
    if _carries_tokens(request.url.path):
        headers["Cache-Control"] = "no-store"
        headers["Pragma"] = "no-cache"
    if _is_https(request):
        headers["Strict-Transport-Security"] = _hsts_value()
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if settings.SECURITY_HEADERS_ENABLED:
            for name, value in security_headers_for(request).items():
                # Route handlers may have set a stricter value already.
                response.headers.setdefault(name, value)
        return response
