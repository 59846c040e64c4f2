from datetime import datetime, time
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BACKUP_TIME = time(21, 0)
DEFAULT_RETENTION_DAYS = 30


class ScheduleFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class ScheduleConfig(BaseModel):
    """Backup schedule as read from the system settings rows."""
    enabled: bool = False
    time_of_day: time = DEFAULT_BACKUP_TIME
    frequency: ScheduleFrequency = ScheduleFrequency.DAILY
    retention_days: int = Field(DEFAULT_RETENTION_DAYS, ge=0)


class BackupArtifact(BaseModel):
    """A stored backup archive, referenced by its file name."""
    file_name: str
    created_date: datetime
    size_bytes: int = 0
    tenant_id: Optional[int] = None


class RecordCounts(BaseModel):
    tenants: int = 0
    subscriptions: int = 0
    sales: int = 0
    settings: int = 0


class BackupManifest(BaseModel):
    """manifest.json written into every archive."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("1.0", alias="schemaVersion")
    backup_date: datetime = Field(..., alias="backupDate")
    app_version: str = Field("1.0.0", alias="appVersion")
    database_type: str = Field(..., alias="databaseType")
    tenant_id: int = Field(..., alias="tenantId")
    record_counts: RecordCounts = Field(default_factory=RecordCounts, alias="recordCounts")
    exported_by: str = Field("scheduler", alias="exportedBy")


class BackupCycleResult(BaseModel):
    """Outcome of one backup cycle across all eligible tenants."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    tenants_succeeded: List[int] = Field(default_factory=list)
    tenants_failed: Dict[int, str] = Field(default_factory=dict)
    pruned: List[str] = Field(default_factory=list)
