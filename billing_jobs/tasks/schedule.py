"""
Backup schedule resolution.

The schedule is stored as system settings (owner 0) and read on every loop
iteration so operators can change it without restarting the process:

- BACKUP_SCHEDULE_ENABLED: "true" / "false" (case-insensitive)
- BACKUP_SCHEDULE_TIME: "HH:mm", defaults to 21:00
- BACKUP_SCHEDULE_FREQUENCY: "daily" or "weekly" (weekly runs on Sundays)
- BACKUP_RETENTION_DAYS: integer, defaults to 30
"""

import logging
from datetime import datetime, time, timedelta
from typing import Optional

from billing_jobs.models import SYSTEM_OWNER_ID
from billing_jobs.schemas import (
    ScheduleConfig,
    ScheduleFrequency,
    DEFAULT_BACKUP_TIME,
    DEFAULT_RETENTION_DAYS,
)
from billing_jobs.services.settings_store import (
    SettingsStore,
    BACKUP_SCHEDULE_ENABLED,
    BACKUP_SCHEDULE_TIME,
    BACKUP_SCHEDULE_FREQUENCY,
    BACKUP_RETENTION_DAYS,
)

logger = logging.getLogger(__name__)

SUNDAY = 6  # datetime.weekday()


def parse_enabled(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() == "true"


def parse_time_of_day(value: Optional[str]) -> time:
    """Parse "HH:mm" (seconds optional); anything else falls back to 21:00."""
    if value:
        for fmt in ("%H:%M", "%H:%M:%S"):
            try:
                return datetime.strptime(value.strip(), fmt).time()
            except ValueError:
                continue
        logger.warning(f"Invalid backup time {value!r}; using {DEFAULT_BACKUP_TIME:%H:%M}")
    return DEFAULT_BACKUP_TIME


def parse_frequency(value: Optional[str]) -> ScheduleFrequency:
    if value and value.strip().lower() == ScheduleFrequency.WEEKLY.value:
        return ScheduleFrequency.WEEKLY
    return ScheduleFrequency.DAILY


def parse_retention_days(value: Optional[str]) -> int:
    try:
        days = int(value.strip())
    except (AttributeError, ValueError):
        return DEFAULT_RETENTION_DAYS
    return days if days >= 0 else DEFAULT_RETENTION_DAYS


async def load_schedule_config(store: SettingsStore) -> ScheduleConfig:
    """
    Read the backup schedule from the system settings.

    Never raises: if the store cannot be read the schedule is reported as
    disabled with the default time and retention.
    """
    try:
        enabled = await store.get(SYSTEM_OWNER_ID, BACKUP_SCHEDULE_ENABLED)
        time_of_day = await store.get(SYSTEM_OWNER_ID, BACKUP_SCHEDULE_TIME)
        frequency = await store.get(SYSTEM_OWNER_ID, BACKUP_SCHEDULE_FREQUENCY)
        retention = await store.get(SYSTEM_OWNER_ID, BACKUP_RETENTION_DAYS)
    except Exception as e:
        logger.warning(f"Could not read backup schedule settings: {e}")
        return ScheduleConfig()

    return ScheduleConfig(
        enabled=parse_enabled(enabled),
        time_of_day=parse_time_of_day(time_of_day),
        frequency=parse_frequency(frequency),
        retention_days=parse_retention_days(retention),
    )


def resolve_next_run(now: datetime, config: ScheduleConfig) -> datetime:
    """
    Compute the next run time strictly after `now`.

    Daily: today at the configured time, or tomorrow if that has passed.
    Weekly: the next Sunday at the configured time; on a Sunday whose
    scheduled time has passed, the Sunday after.
    """
    today_at = now.replace(
        hour=config.time_of_day.hour,
        minute=config.time_of_day.minute,
        second=config.time_of_day.second,
        microsecond=0,
    )

    scheduled = today_at
    if scheduled <= now:
        scheduled += timedelta(days=1)

    if config.frequency == ScheduleFrequency.WEEKLY:
        days_until_sunday = (SUNDAY - now.weekday()) % 7
        scheduled = today_at + timedelta(days=days_until_sunday)
        if scheduled <= now:
            scheduled += timedelta(days=7)

    return scheduled
