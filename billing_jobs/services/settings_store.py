"""
Settings store backed by the owner-scoped settings table.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billing_jobs.models import Setting

logger = logging.getLogger(__name__)

# Keys consumed by the backup scheduler (owner 0)
BACKUP_SCHEDULE_ENABLED = "BACKUP_SCHEDULE_ENABLED"
BACKUP_SCHEDULE_TIME = "BACKUP_SCHEDULE_TIME"
BACKUP_SCHEDULE_FREQUENCY = "BACKUP_SCHEDULE_FREQUENCY"
BACKUP_RETENTION_DAYS = "BACKUP_RETENTION_DAYS"


class SettingsStore:
    """Reads and writes key-value settings for an owner id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, owner_id: int, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        result = await self.db.execute(
            select(Setting.value).where(Setting.owner_id == owner_id, Setting.key == key)
        )
        return result.scalar_one_or_none()

    async def set(self, owner_id: int, key: str, value: Optional[str]) -> None:
        """Insert or update a value and commit."""
        result = await self.db.execute(
            select(Setting).where(Setting.owner_id == owner_id, Setting.key == key)
        )
        row = result.scalar_one_or_none()
        if row is None:
            self.db.add(Setting(owner_id=owner_id, key=key, value=value))
        else:
            row.value = value
        await self.db.commit()
        logger.debug(f"Setting {key} updated for owner {owner_id}")


def get_settings_store(db: AsyncSession) -> SettingsStore:
    """Factory function to create a settings store for a session."""
    return SettingsStore(db)
