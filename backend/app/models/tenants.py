from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, Column, Enum, Integer, String
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.enums import PlanEnum, enum_values
from app.models.mixins import TimestampMixin


def _new_tenant_id() -> str:
    return str(uuid4())


class Tenant(TimestampMixin, Base):
    __tablename__ = "tenants"
    __table_args__ = (
        CheckConstraint("max_users > 0", name="ck_tenants_max_users_positive"),
    )

    id = Column(String(36), primary_key=True, default=_new_tenant_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(50), unique=True, nullable=False, index=True)
    plan = Column(
        Enum(
            PlanEnum,
            name="tenant_plan_enum",
            native_enum=False,
            create_constraint=True,
            validate_strings=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=PlanEnum.FREE,
    )
    max_users = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    logo_url = Column(String, nullable=True)
    primary_color = Column(String(7), nullable=False, default="#007bff")
    secondary_color = Column(String(7), nullable=False, default="#6c757d")

    users = relationship("User", back_populates="tenant", lazy="noload")
