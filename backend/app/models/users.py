from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.enums import RoleEnum, enum_values
from app.models.mixins import TimestampMixin

ROLE_COLUMN_TYPE = Enum(
    RoleEnum,
    name="user_role_enum",
    native_enum=False,
    create_constraint=True,
    validate_strings=True,
    values_callable=enum_values,
)


class User(TimestampMixin, Base):
    __tablename__ = "users"
    __table_args__ = (
        # The same email may exist in several tenants as distinct users.
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
        Index("ix_users_tenant_id", "tenant_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="RESTRICT"), nullable=False)
    email = Column(String(320), nullable=False)
    password_hash = Column(String, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(ROLE_COLUMN_TYPE, nullable=False, default=RoleEnum.USER)
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime, nullable=True)

    tenant = relationship("Tenant", back_populates="users", lazy="selectin")
