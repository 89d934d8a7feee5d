# Audit rows record security-relevant authentication events per tenant:
# logins, lockouts, token rotation, tenant mismatches and role changes.

from sqlalchemy.orm import Session

from app.core.request_meta import resolve_request_meta
from app.models.audit_logs import AuditLog


def create_audit_log(
    db: Session,
    tenant_id: str,
    event: str,
    *,
    success: bool = True,
    user_id: int | None = None,
    email: str | None = None,
    request=None,
    request_meta: dict[str, str | None] | None = None,
    details: dict | None = None,
) -> AuditLog:
    if tenant_id is None:
        raise ValueError("tenant_id is required to create an audit log entry")
    meta = resolve_request_meta(request=request, request_meta=request_meta) or {}
    log = AuditLog(
        tenant_id=tenant_id,
        user_id=user_id,
        email=email,
        event=event,
        success=success,
        client_ip=meta.get("client_ip"),
        user_agent=meta.get("user_agent"),
        request_path=meta.get("path"),
        request_id=meta.get("request_id"),
        details=details or None,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def list_audit_logs(
    db: Session,
    tenant_id: str,
    *,
    event: str | None = None,
    limit: int = 100,
) -> list[AuditLog]:
    query = db.query(AuditLog).filter(AuditLog.tenant_id == tenant_id)
    if event:
        query = query.filter(AuditLog.event == event)
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
