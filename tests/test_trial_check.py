"""
Tests for the trial expiry and overdue invoice check.
"""

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billing_jobs.models import (
    SalePaymentStatus,
    Subscription,
    SubscriptionStatus,
    Tenant,
    TenantStatus,
)
from billing_jobs.services.automation import AutomationEvents
from billing_jobs.tasks.trial_check import (
    SchemaNotReadyError,
    StoreUnavailableError,
    TrialExpiryCheck,
)

from tests.conftest import FIXED_NOW


class WaitRecorder:
    """Replaces TrialExpiryCheck._wait; records delays and stops after N waits."""

    def __init__(self, stop_after: int):
        self.calls = []
        self.stop_after = stop_after

    async def __call__(self, stop_event, seconds):
        self.calls.append(seconds)
        return len(self.calls) >= self.stop_after


def make_check(session_factory, automation, **kwargs) -> TrialExpiryCheck:
    return TrialExpiryCheck(
        session_factory=session_factory,
        automation=automation,
        now=lambda: FIXED_NOW,
        **kwargs
    )


def events_of(automation, event_type):
    return [c.args for c in automation.notify.await_args_list if c.args[0] == event_type]


class TestTrialEnding:
    """Test TrialEnding notifications."""

    @pytest.mark.asyncio
    async def test_trial_ending_within_three_days_notifies(
        self, session_factory, mock_automation, create_tenant, create_subscription
    ):
        tenant = await create_tenant(status=TenantStatus.TRIAL)
        trial_end = FIXED_NOW + timedelta(days=2)
        await create_subscription(tenant.id, trial_end_date=trial_end)

        result = await make_check(session_factory, mock_automation).run_once()

        assert events_of(mock_automation, AutomationEvents.TRIAL_ENDING) == [
            (AutomationEvents.TRIAL_ENDING, tenant.id, {"trialEndDate": trial_end})
        ]
        assert result["trials_ending"] == 1

    @pytest.mark.asyncio
    async def test_trial_ending_later_does_not_notify(
        self, session_factory, mock_automation, create_tenant, create_subscription
    ):
        tenant = await create_tenant(status=TenantStatus.TRIAL)
        await create_subscription(tenant.id, trial_end_date=FIXED_NOW + timedelta(days=10))

        await make_check(session_factory, mock_automation).run_once()

        assert events_of(mock_automation, AutomationEvents.TRIAL_ENDING) == []

    @pytest.mark.asyncio
    async def test_active_subscription_with_trial_date_is_ignored(
        self, session_factory, mock_automation, create_tenant, create_subscription
    ):
        tenant = await create_tenant()
        await create_subscription(
            tenant.id,
            status=SubscriptionStatus.ACTIVE,
            trial_end_date=FIXED_NOW + timedelta(days=1),
        )

        await make_check(session_factory, mock_automation).run_once()

        assert events_of(mock_automation, AutomationEvents.TRIAL_ENDING) == []


class TestReconciliation:
    """Test subscription status reconciliation per tenant."""

    @pytest.mark.asyncio
    async def test_reconciles_each_distinct_tenant_once(
        self, session_factory, mock_automation, create_tenant, create_subscription
    ):
        first = await create_tenant()
        second = await create_tenant()
        await create_tenant()  # no subscription, not reconciled
        await create_subscription(first.id, status=SubscriptionStatus.ACTIVE)
        await create_subscription(first.id, status=SubscriptionStatus.ACTIVE)
        await create_subscription(second.id, status=SubscriptionStatus.ACTIVE)

        service = MagicMock()
        service.check_subscription_status = AsyncMock(return_value=True)
        check = make_check(
            session_factory, mock_automation,
            subscription_service_factory=lambda db: service,
        )

        result = await check.run_once()

        checked = sorted(c.args[0] for c in service.check_subscription_status.await_args_list)
        assert checked == [first.id, second.id]
        assert result["tenants_checked"] == 2

    @pytest.mark.asyncio
    async def test_expired_trial_is_transitioned(
        self, session_factory, mock_automation, create_tenant, create_subscription
    ):
        tenant = await create_tenant(status=TenantStatus.TRIAL)
        subscription = await create_subscription(
            tenant.id, trial_end_date=FIXED_NOW - timedelta(hours=1)
        )

        await make_check(session_factory, mock_automation).run_once()

        async with session_factory() as db:
            stored = await db.get(Subscription, subscription.id)
            stored_tenant = await db.get(Tenant, tenant.id)
        assert stored.status == SubscriptionStatus.EXPIRED
        assert stored_tenant.status == TenantStatus.EXPIRED


class TestPaymentOverdue:
    """Test PaymentOverdue notifications."""

    @pytest.mark.asyncio
    async def test_counts_unpaid_invoices_past_due(
        self, session_factory, mock_automation, create_tenant, create_sale
    ):
        tenant = await create_tenant()
        past = FIXED_NOW - timedelta(days=5)
        await create_sale(tenant.id, due_date=past, payment_status=SalePaymentStatus.PENDING)
        await create_sale(tenant.id, due_date=past, payment_status=SalePaymentStatus.PARTIAL)
        await create_sale(tenant.id, due_date=past, payment_status=SalePaymentStatus.PAID)
        await create_sale(tenant.id, due_date=past, is_deleted=True)
        await create_sale(tenant.id, due_date=FIXED_NOW + timedelta(days=5))
        await create_sale(tenant.id, due_date=None)

        result = await make_check(session_factory, mock_automation).run_once()

        assert events_of(mock_automation, AutomationEvents.PAYMENT_OVERDUE) == [
            (AutomationEvents.PAYMENT_OVERDUE, tenant.id, {"overdueCount": 2})
        ]
        assert result["tenants_overdue"] == 1

    @pytest.mark.asyncio
    async def test_groups_by_tenant(
        self, session_factory, mock_automation, create_tenant, create_sale
    ):
        first = await create_tenant()
        second = await create_tenant()
        past = FIXED_NOW - timedelta(days=1)
        await create_sale(first.id, due_date=past)
        await create_sale(second.id, due_date=past)
        await create_sale(second.id, due_date=past)
        await create_sale(second.id, due_date=past)

        await make_check(session_factory, mock_automation).run_once()

        overdue = {args[1]: args[2]["overdueCount"]
                   for args in events_of(mock_automation, AutomationEvents.PAYMENT_OVERDUE)}
        assert overdue == {first.id: 1, second.id: 3}

    @pytest.mark.asyncio
    async def test_sales_without_tenant_are_ignored(
        self, session_factory, mock_automation, create_sale
    ):
        await create_sale(None, due_date=FIXED_NOW - timedelta(days=1))

        await make_check(session_factory, mock_automation).run_once()

        mock_automation.notify.assert_not_awaited()


class TestStoreReadiness:
    """Test skipping when the database is unreachable or not migrated."""

    @pytest.mark.asyncio
    async def test_missing_tables_raise_schema_not_ready(self, empty_engine, mock_automation):
        factory = async_sessionmaker(empty_engine, class_=AsyncSession, expire_on_commit=False)

        with pytest.raises(SchemaNotReadyError, match="subscriptions"):
            await make_check(factory, mock_automation).run_once()

    @pytest.mark.asyncio
    async def test_unreachable_store_raises_store_unavailable(self, mock_automation):
        db = MagicMock()
        db.connection = AsyncMock(side_effect=OSError("connection refused"))
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = db

        with pytest.raises(StoreUnavailableError, match="connection refused"):
            await make_check(factory, mock_automation).run_once()

        mock_automation.notify.assert_not_awaited()


class TestCheckLoop:
    """Test the loop's waits."""

    @pytest.mark.asyncio
    async def test_startup_delay_then_hourly(self, mock_automation):
        check = make_check(MagicMock(), mock_automation)
        check.run_once = AsyncMock(return_value={})
        check._wait = WaitRecorder(stop_after=3)

        await check.run(asyncio.Event())

        assert check._wait.calls == [120, 3600, 3600]
        assert check.run_once.await_count == 2

    @pytest.mark.asyncio
    async def test_unreachable_store_uses_short_backoff(self, mock_automation):
        db = MagicMock()
        db.connection = AsyncMock(side_effect=OSError("connection refused"))
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = db
        check = make_check(factory, mock_automation)
        check._wait = WaitRecorder(stop_after=2)

        await check.run(asyncio.Event())

        assert check._wait.calls == [check.startup_delay, 600]
        mock_automation.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_schema_not_ready_uses_short_backoff(self, empty_engine, mock_automation):
        factory = async_sessionmaker(empty_engine, class_=AsyncSession, expire_on_commit=False)
        check = make_check(factory, mock_automation)
        check._wait = WaitRecorder(stop_after=2)

        await check.run(asyncio.Event())

        assert check._wait.calls == [check.startup_delay, check.schema_backoff]

    @pytest.mark.asyncio
    async def test_unexpected_error_waits_full_interval(self, mock_automation):
        check = make_check(MagicMock(), mock_automation)
        check.run_once = AsyncMock(side_effect=[ValueError("bad row"), {}])
        check._wait = WaitRecorder(stop_after=3)

        await check.run(asyncio.Event())

        assert check._wait.calls == [check.startup_delay, 3600, 3600]
        assert check.run_once.await_count == 2

    @pytest.mark.asyncio
    async def test_stop_during_startup_delay_skips_all_work(self, mock_automation):
        check = make_check(MagicMock(), mock_automation)
        check.run_once = AsyncMock()
        stop_event = asyncio.Event()
        stop_event.set()

        await asyncio.wait_for(check.run(stop_event), timeout=1)

        check.run_once.assert_not_awaited()
