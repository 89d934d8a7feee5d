# This file bootstraps the FastAPI app, wires up middlewares for
# logging/security, sets up CORS, registers the error envelope handlers
# and includes the tenant, auth and user routers.

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.auth import router as auth_router
from app.api.tenants import router as tenants_router
from app.api.users import router as users_router
from app.core.config import settings
from app.core.db import Base, engine
from app.core.errors import AppError, InternalError, ValidationError
from app.core.logging import APILoggingMiddleware
from app.core.rate_limit import RateLimiter
from app.core.security_headers import SecurityHeadersMiddleware
from app.core.startup_checks import run_startup_checks
from app.tenancy.middleware import RequestContextMiddleware

logger = logging.getLogger(__name__)

_HTTP_ERROR_CODES = {
    400: "validation_error",
    401: "authentication_error",
    403: "authorization_error",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}

# Create DB tables right away for local runs. Deployed environments set
# SKIP_MIGRATIONS=1 and run alembic instead.
if os.getenv("SKIP_MIGRATIONS") != "1":
    Base.metadata.create_all(bind=engine)

app = FastAPI(title="Tenant Identity Service")
app.state.rate_limiter = RateLimiter(
    capacity=settings.AUTH_RATE_LIMIT_ATTEMPTS,
    window_seconds=settings.AUTH_RATE_LIMIT_WINDOW_SECONDS,
)


@app.on_event("startup")
def _run_security_startup_checks() -> None:
    run_startup_checks()


@app.on_event("shutdown")
def _close_rate_limiter() -> None:
    app.state.rate_limiter.close()


def _error_response(exc: AppError) -> JSONResponse:
    response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
    response.headers["X-Error-Code"] = exc.code
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    retry_after = getattr(exc, "retry_after", None)
    if retry_after:
        response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(AppError)
def handle_app_error(_request: Request, exc: AppError):
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
def handle_request_validation(_request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return _error_response(ValidationError(details={"errors": errors}))


@app.exception_handler(StarletteHTTPException)
def handle_http_exception(_request: Request, exc: StarletteHTTPException):
    code = _HTTP_ERROR_CODES.get(exc.status_code, "http_error")
    response = JSONResponse(
        status_code=exc.status_code,
        content={"code": code, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )
    response.headers["X-Error-Code"] = code
    return response


@app.exception_handler(SQLAlchemyError)
def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.error(
        "database.error",
        exc_info=exc,
        extra={"request_id": getattr(request.state, "request_id", None), "path": request.url.path},
    )
    return _error_response(InternalError())


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(
        "unhandled.error",
        exc_info=exc,
        extra={"request_id": getattr(request.state, "request_id", None), "path": request.url.path},
    )
    return _error_response(InternalError())


# Observability and hardening layers. Later additions wrap earlier ones, so
# the request context is in place before the logging middleware runs.
app.add_middleware(APILoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(tenants_router)
app.include_router(auth_router)
app.include_router(users_router)


@app.get("/ping")
def ping():
    return {"message": "pong"}


# CORS setup
# Allows the tenant frontends to call the API with a bearer token.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id", "X-Error-Code", "Retry-After"],
    max_age=86400,
)
