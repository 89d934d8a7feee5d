from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB

from app.core.db import Base
from app.core.time import utcnow

JSON_TYPE = JSONB().with_variant(JSON, "sqlite")


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_tenant_time", "tenant_id", "created_at"),
        Index("ix_audit_tenant_event_time", "tenant_id", "event", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)
    # Not a foreign key: a tenant-mismatch entry records a user from another tenant.
    user_id = Column(Integer, nullable=True)
    email = Column(String, nullable=True)
    event = Column(String, nullable=False)
    success = Column(Boolean, nullable=False, default=True)
    client_ip = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    request_path = Column(String, nullable=True)
    request_id = Column(String, nullable=True)
    details = Column(JSON_TYPE, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
