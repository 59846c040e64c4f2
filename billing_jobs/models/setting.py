"""
Key-value settings scoped by owner. Owner 0 holds system-wide settings.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from billing_jobs.database import Base
from billing_jobs.utils import utcnow

SYSTEM_OWNER_ID = 0


class Setting(Base):
    """A single settings row."""

    __tablename__ = "settings"
    __table_args__ = (
        UniqueConstraint("owner_id", "key", name="uq_settings_owner_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False, default=SYSTEM_OWNER_ID)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Setting(owner_id={self.owner_id}, key='{self.key}', value={self.value!r})>"
