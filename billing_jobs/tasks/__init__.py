"""
Background jobs module.

Provides:
- Backup scheduler: per-tenant backups on the configured schedule, with retention pruning
- Trial expiry check: hourly sweep for ending trials and overdue invoices
- Runner: start/stop both jobs for the application lifespan
"""

from billing_jobs.tasks.schedule import (
    load_schedule_config,
    resolve_next_run
)
from billing_jobs.tasks.retention import RetentionPruner
from billing_jobs.tasks.backup_scheduler import (
    BackupScheduler,
    RunLock,
    backup_run_lock
)
from billing_jobs.tasks.trial_check import (
    TrialExpiryCheck,
    MaintenanceSkipped,
    StoreUnavailableError,
    SchemaNotReadyError
)
from billing_jobs.tasks.runner import (
    BackgroundJobs,
    background_jobs,
    start_background_jobs,
    stop_background_jobs,
    get_job_status
)

__all__ = [
    # Schedule
    "load_schedule_config",
    "resolve_next_run",
    # Backups
    "RetentionPruner",
    "BackupScheduler",
    "RunLock",
    "backup_run_lock",
    # Trial check
    "TrialExpiryCheck",
    "MaintenanceSkipped",
    "StoreUnavailableError",
    "SchemaNotReadyError",
    # Runner
    "BackgroundJobs",
    "background_jobs",
    "start_background_jobs",
    "stop_background_jobs",
    "get_job_status"
]
