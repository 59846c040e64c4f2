"""
Tenant model for customer accounts in the multi-tenant billing system.
"""

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, Enum, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_jobs.database import Base, enum_values
from billing_jobs.utils import utcnow


class TenantStatus(str, enum.Enum):
    """Lifecycle state of a tenant account."""

    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    TRIAL = "Trial"
    EXPIRED = "Expired"


# Tenants eligible for scheduled backups
BACKUP_ELIGIBLE_STATUSES = (TenantStatus.ACTIVE, TenantStatus.TRIAL)


class Tenant(Base):
    """
    An isolated customer account.

    Only tenants in Active or Trial status take part in scheduled backups.
    """

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[TenantStatus] = mapped_column(
        Enum(TenantStatus, native_enum=False, length=20, values_callable=enum_values),
        default=TenantStatus.ACTIVE,
        nullable=False,
        index=True
    )
    trial_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        server_default=func.now()
    )

    subscriptions: Mapped[List["Subscription"]] = relationship(
        "Subscription",
        back_populates="tenant",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name='{self.name}', status={self.status.value})>"
