"""
Periodic trial expiry and overdue invoice check.

Every hour (after a two minute startup delay) the check:
1. Verifies the database is reachable and migrated
2. Emits TrialEnding for trials ending within the next three days
3. Reconciles the subscription status of every tenant with a subscription
4. Emits PaymentOverdue per tenant with unpaid invoices past their due date
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Set

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billing_jobs.database import AsyncSessionLocal
from billing_jobs.models import Sale, Subscription, SubscriptionStatus, UNPAID_STATUSES
from billing_jobs.services.automation import (
    AutomationEvents,
    AutomationProvider,
    get_automation_provider,
)
from billing_jobs.services.subscription import SubscriptionService
from billing_jobs.tasks.timing import wait_or_stop
from billing_jobs.utils import utcnow

logger = logging.getLogger(__name__)

STARTUP_DELAY = 2 * 60
CHECK_INTERVAL = 60 * 60
SCHEMA_BACKOFF = 10 * 60
TRIAL_WARNING_DAYS = 3

REQUIRED_TABLES = ("subscriptions", "sales")


class MaintenanceSkipped(Exception):
    """A check cycle could not run because of a transient infrastructure condition."""
    pass


class StoreUnavailableError(MaintenanceSkipped):
    """The database could not be reached."""
    pass


class SchemaNotReadyError(MaintenanceSkipped):
    """Required tables are missing (migrations not applied yet)."""
    pass


def _table_names(sync_conn) -> Set[str]:
    return set(inspect(sync_conn).get_table_names())


class TrialExpiryCheck:
    """Hourly sweep for ending trials, expired subscriptions and overdue invoices."""

    job_id = "trial_expiry_check"
    name = "Trial Expiry & Overdue Check"

    def __init__(
        self,
        session_factory: Optional[Callable[[], Any]] = None,
        automation: Optional[AutomationProvider] = None,
        subscription_service_factory: Optional[Callable[[AsyncSession], SubscriptionService]] = None,
        now: Optional[Callable[[], datetime]] = None,
        startup_delay: float = STARTUP_DELAY,
        interval: float = CHECK_INTERVAL,
        schema_backoff: float = SCHEMA_BACKOFF,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.automation = automation or get_automation_provider()
        self._now = now or utcnow
        self._make_subscription_service = subscription_service_factory or (
            lambda db: SubscriptionService(db, now=self._now)
        )
        self.startup_delay = startup_delay
        self.interval = interval
        self.schema_backoff = schema_backoff

        self.next_run: Optional[datetime] = None
        self.last_result: Optional[Dict[str, int]] = None

    async def _wait(self, stop_event: asyncio.Event, seconds: float) -> bool:
        self.next_run = self._now() + timedelta(seconds=seconds)
        return await wait_or_stop(stop_event, seconds)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run until `stop_event` is set or the task is cancelled."""
        logger.info("Trial expiry check started")
        if await self._wait(stop_event, self.startup_delay):
            return

        while not stop_event.is_set():
            delay = self.interval
            try:
                self.last_result = await self.run_once()
            except MaintenanceSkipped as e:
                logger.warning(f"Trial expiry check skipped: {e}")
                delay = self.schema_backoff
            except Exception as e:
                logger.error(f"Trial expiry check failed: {e}", exc_info=True)

            if await self._wait(stop_event, delay):
                break

        logger.info("Trial expiry check stopped")

    async def run_once(self) -> Dict[str, int]:
        """
        Execute a single check cycle.

        Returns:
            Counts of trials ending, tenants reconciled and tenants with overdue invoices

        Raises:
            StoreUnavailableError: If the database is unreachable
            SchemaNotReadyError: If required tables are missing
        """
        async with self.session_factory() as db:
            await self._ensure_store_ready(db)

            now = self._now()
            horizon = now + timedelta(days=TRIAL_WARNING_DAYS)

            expiring = (await db.execute(
                select(Subscription.tenant_id, Subscription.trial_end_date)
                .where(
                    Subscription.status == SubscriptionStatus.TRIAL,
                    Subscription.trial_end_date.is_not(None),
                    Subscription.trial_end_date >= now,
                    Subscription.trial_end_date <= horizon,
                )
            )).all()
            for tenant_id, trial_end_date in expiring:
                await self.automation.notify(
                    AutomationEvents.TRIAL_ENDING,
                    tenant_id,
                    {"trialEndDate": trial_end_date}
                )

            tenant_ids = (await db.execute(
                select(Subscription.tenant_id).distinct()
            )).scalars().all()
            subscription_service = self._make_subscription_service(db)
            for tenant_id in tenant_ids:
                await subscription_service.check_subscription_status(tenant_id)

            overdue = (await db.execute(
                select(Sale.tenant_id, func.count(Sale.id))
                .where(
                    Sale.tenant_id.is_not(None),
                    Sale.is_deleted.is_(False),
                    Sale.due_date.is_not(None),
                    Sale.due_date < now,
                    Sale.payment_status.in_(UNPAID_STATUSES),
                )
                .group_by(Sale.tenant_id)
            )).all()
            overdue_tenants = 0
            for tenant_id, count in overdue:
                if not count:
                    continue
                overdue_tenants += 1
                await self.automation.notify(
                    AutomationEvents.PAYMENT_OVERDUE,
                    tenant_id,
                    {"overdueCount": count}
                )

        result = {
            "trials_ending": len(expiring),
            "tenants_checked": len(tenant_ids),
            "tenants_overdue": overdue_tenants,
        }
        logger.info(f"Trial expiry check complete: {result}")
        return result

    async def _ensure_store_ready(self, db: AsyncSession) -> None:
        try:
            conn = await db.connection()
            tables = await conn.run_sync(_table_names)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(f"database unreachable: {e}") from e

        missing = [table for table in REQUIRED_TABLES if table not in tables]
        if missing:
            raise SchemaNotReadyError(f"tables not migrated yet: {', '.join(missing)}")

    def get_status(self) -> Dict[str, Any]:
        """Status snapshot for the operator endpoints."""
        return {
            "id": self.job_id,
            "name": self.name,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_result": self.last_result,
        }
