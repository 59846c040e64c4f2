"""
Lifecycle management for the background jobs.

Both jobs run as independent asyncio tasks sharing one stop event. Stopping
sets the event so loops exit at their next wait, then cancels whatever is
still running after a grace period.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from billing_jobs.tasks.backup_scheduler import BackupScheduler
from billing_jobs.tasks.trial_check import TrialExpiryCheck

logger = logging.getLogger(__name__)


class BackgroundJobs:
    """Starts, stops and reports on the backup scheduler and trial check."""

    def __init__(self):
        self._stop_event: Optional[asyncio.Event] = None
        self._tasks: Dict[str, asyncio.Task] = {}
        self.backup_scheduler: Optional[BackupScheduler] = None
        self.trial_check: Optional[TrialExpiryCheck] = None

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def start(
        self,
        backup_scheduler: Optional[BackupScheduler] = None,
        trial_check: Optional[TrialExpiryCheck] = None
    ) -> None:
        """Create the worker tasks on the running event loop."""
        if self.running:
            logger.warning("Background jobs are already running")
            return

        self._stop_event = asyncio.Event()
        self.backup_scheduler = backup_scheduler or BackupScheduler()
        self.trial_check = trial_check or TrialExpiryCheck()

        self._tasks = {
            job.job_id: asyncio.create_task(job.run(self._stop_event), name=job.job_id)
            for job in (self.backup_scheduler, self.trial_check)
        }
        logger.info("Background jobs started")

    async def stop(self, grace_period: float = 10.0) -> None:
        """Signal both loops to stop and wait for them."""
        if not self._tasks:
            logger.info("Background jobs were not running")
            return

        self._stop_event.set()
        _, pending = await asyncio.wait(self._tasks.values(), timeout=grace_period)
        for task in pending:
            task.cancel()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)

        if self.trial_check is not None:
            await self.trial_check.automation.close()

        self._tasks = {}
        logger.info("Background jobs stopped")

    def get_backup_scheduler(self) -> BackupScheduler:
        """The running scheduler, or a standalone one sharing the same run-lock."""
        if self.backup_scheduler is None:
            self.backup_scheduler = BackupScheduler()
        return self.backup_scheduler

    def get_job_status(self) -> List[Dict[str, Any]]:
        """
        Get status of both background jobs.

        Returns:
            List of job status dictionaries containing id, name, running,
            next_run (ISO or None) and last_result
        """
        jobs = []
        for job in (self.backup_scheduler, self.trial_check):
            if job is None:
                continue
            status = job.get_status()
            task = self._tasks.get(job.job_id)
            status["running"] = task is not None and not task.done()
            jobs.append(status)
        return jobs


# Global instance (singleton)
background_jobs = BackgroundJobs()


def start_background_jobs() -> None:
    background_jobs.start()


async def stop_background_jobs() -> None:
    await background_jobs.stop()


def get_job_status() -> List[Dict[str, Any]]:
    return background_jobs.get_job_status()
