from billing_jobs.schemas.common import HealthResponse
from billing_jobs.schemas.backup import (
    ScheduleConfig, ScheduleFrequency, BackupArtifact, BackupManifest,
    RecordCounts, BackupCycleResult, DEFAULT_BACKUP_TIME, DEFAULT_RETENTION_DAYS
)

__all__ = [
    # Common
    "HealthResponse",
    # Backup
    "ScheduleConfig",
    "ScheduleFrequency",
    "BackupArtifact",
    "BackupManifest",
    "RecordCounts",
    "BackupCycleResult",
    "DEFAULT_BACKUP_TIME",
    "DEFAULT_RETENTION_DAYS",
]
