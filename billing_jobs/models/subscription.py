"""
Subscription model for tenant plans and trials.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_jobs.database import Base, enum_values
from billing_jobs.utils import utcnow


class SubscriptionStatus(str, enum.Enum):
    """Billing state of a subscription."""

    TRIAL = "Trial"
    ACTIVE = "Active"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"
    SUSPENDED = "Suspended"
    PAST_DUE = "PastDue"


class Subscription(Base):
    """
    A tenant's subscription record.

    The trial expiry check reads these rows; status transitions are made by
    the subscription service.
    """

    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus, native_enum=False, length=20, values_callable=enum_values),
        default=SubscriptionStatus.TRIAL,
        nullable=False,
        index=True
    )
    start_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    trial_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="subscriptions")

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, tenant_id={self.tenant_id}, "
            f"status={self.status.value}, trial_end={self.trial_end_date})>"
        )
