from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from app.core.db import Base
from app.core.time import utcnow


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("ix_refresh_tokens_user_tenant", "user_id", "tenant_id"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # SHA-256 of the token value; the raw token is never stored.
    token_hash = Column(String(64), unique=True, nullable=False)
    jti = Column(String(36), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="RESTRICT"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
