"""
Scheduled per-tenant backups with retention pruning.

The scheduler loops over the process lifetime:

    idle -> waiting (until the next scheduled time) -> running -> cooldown -> idle

A cycle backs up every Active or Trial tenant one after another, then prunes
archives older than the retention window. Only one cycle may be in flight per
process; a cycle that cannot take the run-lock immediately is dropped, not
queued.
"""

import asyncio
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from billing_jobs.config import settings
from billing_jobs.database import AsyncSessionLocal
from billing_jobs.schemas import BackupCycleResult, ScheduleConfig
from billing_jobs.services.backup import BackupService
from billing_jobs.services.settings_store import get_settings_store
from billing_jobs.services.storage import BackupStorage, get_backup_storage
from billing_jobs.services.tenants import get_tenant_registry
from billing_jobs.tasks.retention import RetentionPruner
from billing_jobs.tasks.schedule import load_schedule_config, resolve_next_run
from billing_jobs.tasks.timing import wait_or_stop

logger = logging.getLogger(__name__)

IDLE_INTERVAL = 60 * 60  # schedule disabled or cycle already running
MIN_DELAY = 10  # missed windows run almost immediately
COOLDOWN = 60
ERROR_BACKOFF = 60 * 60


class RunLock:
    """Process-wide mutual exclusion with a non-blocking try-acquire."""

    def __init__(self):
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def is_held(self) -> bool:
        return self._lock.locked()


# Shared by the scheduled loop and manual triggers
backup_run_lock = RunLock()


class BackupScheduler:
    """
    Background loop running tenant backup cycles on the configured schedule.

    Attributes:
        state: Current loop state (idle, waiting, running, cooldown, stopped)
        next_run: Next resolved run time, or None when disabled
        last_result: Result of the last completed cycle
    """

    job_id = "scheduled_backup"
    name = "Scheduled Tenant Backup"

    def __init__(
        self,
        session_factory: Optional[Callable[[], Any]] = None,
        storage: Optional[BackupStorage] = None,
        backup_service_factory: Optional[Callable[[Any], BackupService]] = None,
        run_lock: Optional[RunLock] = None,
        now: Optional[Callable[[], datetime]] = None,
        tenant_timeout: Optional[float] = None,
        idle_interval: float = IDLE_INTERVAL,
        min_delay: float = MIN_DELAY,
        cooldown: float = COOLDOWN,
        error_backoff: float = ERROR_BACKOFF,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.storage = storage or get_backup_storage()
        self._make_backup_service = backup_service_factory or (
            lambda db: BackupService(db, self.storage, now=self._now)
        )
        self.run_lock = run_lock or backup_run_lock
        self._now = now or datetime.now
        self.pruner = RetentionPruner(self.storage, now=self._now)

        if tenant_timeout is None:
            tenant_timeout = settings.BACKUP_TENANT_TIMEOUT_SECONDS
        self.tenant_timeout = tenant_timeout or None

        self.idle_interval = idle_interval
        self.min_delay = min_delay
        self.cooldown = cooldown
        self.error_backoff = error_backoff

        self.state = "idle"
        self.next_run: Optional[datetime] = None
        self.last_result: Optional[BackupCycleResult] = None

    async def _wait(self, stop_event: asyncio.Event, seconds: float) -> bool:
        return await wait_or_stop(stop_event, seconds)

    async def load_config(self) -> ScheduleConfig:
        """Read the schedule fresh from the settings store."""
        async with self.session_factory() as db:
            return await load_schedule_config(get_settings_store(db))

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Run until `stop_event` is set or the task is cancelled.

        Errors anywhere in an iteration are logged and followed by a one hour
        backoff; the loop itself only ends when stopped or cancelled.
        """
        logger.info("Backup scheduler started")
        while not stop_event.is_set():
            try:
                config = await self.load_config()

                if not config.enabled:
                    self.state = "idle"
                    self.next_run = None
                    logger.info("Scheduled backups are disabled; checking again later")
                    if await self._wait(stop_event, self.idle_interval):
                        break
                    continue

                now = self._now()
                self.next_run = resolve_next_run(now, config)
                self.state = "waiting"
                delay = max((self.next_run - now).total_seconds(), self.min_delay)
                logger.info(
                    f"Next {config.frequency.value} backup scheduled for: "
                    f"{self.next_run:%Y-%m-%d %H:%M:%S}"
                )
                if await self._wait(stop_event, delay):
                    break

                self.state = "running"
                result = await self.run_cycle(config.retention_days)

                if result.skipped:
                    self.state = "idle"
                    if await self._wait(stop_event, self.idle_interval):
                        break
                    continue

                self.state = "cooldown"
                if await self._wait(stop_event, self.cooldown):
                    break
                self.state = "idle"

            except Exception as e:
                logger.error(f"Error in backup scheduler: {e}", exc_info=True)
                self.state = "idle"
                if await self._wait(stop_event, self.error_backoff):
                    break

        self.state = "stopped"
        logger.info("Backup scheduler stopped")

    async def run_cycle(self, retention_days: Optional[int] = None) -> BackupCycleResult:
        """
        Back up every eligible tenant, then prune old archives.

        Args:
            retention_days: Retention window; read from settings when None

        Returns:
            Cycle result; `skipped` is set when another cycle holds the lock
        """
        result = BackupCycleResult(started_at=self._now())

        if not self.run_lock.try_acquire():
            logger.warning("A backup cycle is already running; skipping this run")
            result.skipped = True
            result.finished_at = self._now()
            return result

        try:
            if retention_days is None:
                retention_days = (await self.load_config()).retention_days

            async with self.session_factory() as db:
                tenant_ids = await get_tenant_registry(db).list_tenant_ids()
            logger.info(f"Starting backup cycle for {len(tenant_ids)} tenant(s)")

            for tenant_id in tenant_ids:
                try:
                    await self._backup_tenant(tenant_id)
                    result.tenants_succeeded.append(tenant_id)
                except Exception as e:
                    reason = str(e) or type(e).__name__
                    logger.error(f"Backup failed for tenant {tenant_id}: {reason}", exc_info=True)
                    result.tenants_failed[tenant_id] = reason

            result.pruned = await self.pruner.prune(retention_days)
            logger.info(
                f"Backup cycle complete: succeeded={len(result.tenants_succeeded)}, "
                f"failed={len(result.tenants_failed)}, pruned={len(result.pruned)}"
            )
        finally:
            result.finished_at = self._now()
            self.last_result = result
            self.run_lock.release()

        return result

    async def _backup_tenant(self, tenant_id: int) -> str:
        async with self.session_factory() as db:
            service = self._make_backup_service(db)
            backup = service.create_full_backup(
                tenant_id,
                export_to_desktop=False,
                upload_to_google_drive=False,
                send_email=False,
            )
            if self.tenant_timeout:
                return await asyncio.wait_for(backup, timeout=self.tenant_timeout)
            return await backup

    def get_status(self) -> Dict[str, Any]:
        """Status snapshot for the operator endpoints."""
        return {
            "id": self.job_id,
            "name": self.name,
            "state": self.state,
            "cycle_in_progress": self.run_lock.is_held,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_result": self.last_result.model_dump(mode="json") if self.last_result else None,
        }
