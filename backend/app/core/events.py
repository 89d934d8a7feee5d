# Security audit trail. Every event goes to the structured "security_audit"
# log; events that carry a tenant are also persisted as AuditLog rows. The
# client never sees which check failed, but operators can.

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.logging import get_structured_logger
from app.core.request_meta import resolve_request_meta
from app.crud.audit import create_audit_log

logger = logging.getLogger(__name__)
audit_logger = get_structured_logger("security_audit")

# Failures of these are attack signals and are logged at warning level.
SECURITY_EVENTS = {
    "login",
    "login_locked",
    "account_locked",
    "tenant_mismatch",
    "refresh",
    "refresh_rejected",
    "logout",
    "register",
    "user_limit_reached",
    "role_changed",
}


def record_security_event(
    db: Session | None,
    tenant_id: str | None,
    event: str,
    *,
    success: bool,
    user_id: int | None = None,
    email: str | None = None,
    request=None,
    details: dict | None = None,
) -> None:
    if event not in SECURITY_EVENTS:
        raise ValueError(f"Unknown security event: {event}")
    meta = resolve_request_meta(request=request) or {}
    level = logging.INFO if success else logging.WARNING
    audit_logger.log(
        level,
        f"security.{event}",
        extra={
            "event": event,
            "success": success,
            "tenant_id": tenant_id,
            "user_id": user_id,
            "email": email,
            "request_id": meta.get("request_id"),
            "client_ip": meta.get("client_ip"),
            "user_agent": meta.get("user_agent"),
            "path": meta.get("path"),
            "details": details,
        },
    )
    if db is None or tenant_id is None:
        return
    try:
        create_audit_log(
            db,
            tenant_id,
            event,
            success=success,
            user_id=user_id,
            email=email,
            request=request,
            details=details,
        )
    except SQLAlchemyError:
        # The decision for the request has already been made; losing the
        # audit row must not change it.
        db.rollback()
        logger.exception("audit.persist_failed", extra={"event": event, "tenant_id": tenant_id})
