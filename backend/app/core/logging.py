# Structured JSON logging. Every HTTP request produces one "request.completed"
# (or "request.failed") entry on the api_logger carrying the tenant slug, the
# caller's user id, the route template and the X-Error-Code of the response.

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from time import monotonic
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.request_meta import tenant_slug_from_path
from app.core.security import JWTError, decode_token

# Attributes every LogRecord carries; anything else on a record came in via `extra`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Emitted as null rather than dropped, so request lines always share one shape.
_ALWAYS_FIELDS = frozenset(
    {
        "request_id",
        "tenant_slug",
        "user_id",
        "route",
        "method",
        "status_code",
        "duration_ms",
        "error_code",
    }
)


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and (value is not None or key in _ALWAYS_FIELDS)
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=str)


def get_structured_logger(name: str) -> logging.Logger:
    """JSON-to-stderr logger; idempotent so modules can call it at import time."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonLogFormatter())
        logger.addHandler(handler)
        logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
        logger.propagate = False
    return logger


logger = get_structured_logger("api_logger")


def _caller_user_id(request: Request) -> int | None:
    # Read-only peek for the log line; admission is decided by the tenancy guard.
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        claims = decode_token(token.strip(), settings.JWT_ACCESS_SECRET)
    except JWTError:
        return None
    return claims.get("userId") if claims.get("typ") == "access" else None


def _request_fields(request: Request, started: float) -> dict[str, Any]:
    route = request.scope.get("route")
    path_params = request.scope.get("path_params") or {}
    return {
        "request_id": getattr(request.state, "request_id", None),
        "tenant_slug": (
            path_params.get("tenant_slug")
            or path_params.get("slug")
            or tenant_slug_from_path(request.url.path)
        ),
        "user_id": _caller_user_id(request),
        "route": getattr(route, "path", None) or request.url.path,
        "method": request.method,
        "duration_ms": round((monotonic() - started) * 1000.0, 2),
    }


class APILoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = monotonic()
        try:
            response = await call_next(request)
        except Exception:
            fields = _request_fields(request, started)
            fields.update(status_code=500, error_code="unhandled_exception")
            logger.exception("request.failed", extra=fields)
            raise

        fields = _request_fields(request, started)
        fields.update(
            status_code=response.status_code,
            error_code=response.headers.get("X-Error-Code"),
        )
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, "request.completed", extra=fields)
        return response
