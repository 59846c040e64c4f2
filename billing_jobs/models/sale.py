"""
Sale (invoice) model. Only the fields the overdue check needs are mapped.
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from billing_jobs.database import Base, enum_values
from billing_jobs.utils import utcnow


class SalePaymentStatus(str, enum.Enum):
    """Payment state of an invoice."""

    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"


UNPAID_STATUSES = (SalePaymentStatus.PENDING, SalePaymentStatus.PARTIAL)


class Sale(Base):
    """An invoice issued by a tenant."""

    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    invoice_no: Mapped[str] = mapped_column(String(50), nullable=False)
    grand_total: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"))
    payment_status: Mapped[SalePaymentStatus] = mapped_column(
        Enum(SalePaymentStatus, native_enum=False, length=20, values_callable=enum_values),
        default=SalePaymentStatus.PENDING,
        nullable=False
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        server_default=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<Sale(id={self.id}, invoice_no='{self.invoice_no}', "
            f"status={self.payment_status.value}, due={self.due_date})>"
        )
