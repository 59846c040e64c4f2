"""
Tests for subscription status reconciliation.
"""

import pytest
from datetime import timedelta

from billing_jobs.models import Subscription, SubscriptionStatus, Tenant, TenantStatus
from billing_jobs.services.subscription import SubscriptionService

from tests.conftest import FIXED_NOW


async def reconcile(session_factory, tenant_id: int) -> bool:
    async with session_factory() as db:
        return await SubscriptionService(db, now=lambda: FIXED_NOW).check_subscription_status(tenant_id)


async def reload(session_factory, model, pk):
    async with session_factory() as db:
        return await db.get(model, pk)


class TestCheckSubscriptionStatus:
    """Test time-based subscription transitions."""

    @pytest.mark.asyncio
    async def test_running_trial_stays_trial(self, session_factory, create_tenant, create_subscription):
        tenant = await create_tenant(status=TenantStatus.TRIAL)
        subscription = await create_subscription(
            tenant.id, trial_end_date=FIXED_NOW + timedelta(days=5)
        )

        assert await reconcile(session_factory, tenant.id) is True

        stored = await reload(session_factory, Subscription, subscription.id)
        assert stored.status == SubscriptionStatus.TRIAL

    @pytest.mark.asyncio
    async def test_overdue_trial_expires_subscription_and_tenant(
        self, session_factory, create_tenant, create_subscription
    ):
        tenant = await create_tenant(status=TenantStatus.TRIAL)
        subscription = await create_subscription(
            tenant.id, trial_end_date=FIXED_NOW - timedelta(minutes=1)
        )

        assert await reconcile(session_factory, tenant.id) is False

        stored = await reload(session_factory, Subscription, subscription.id)
        assert stored.status == SubscriptionStatus.EXPIRED
        assert stored.updated_at == FIXED_NOW
        stored_tenant = await reload(session_factory, Tenant, tenant.id)
        assert stored_tenant.status == TenantStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_passed_term_expires_active_subscription(
        self, session_factory, create_tenant, create_subscription
    ):
        tenant = await create_tenant()
        subscription = await create_subscription(
            tenant.id,
            status=SubscriptionStatus.ACTIVE,
            expires_at=FIXED_NOW - timedelta(days=1),
        )

        assert await reconcile(session_factory, tenant.id) is False

        stored = await reload(session_factory, Subscription, subscription.id)
        assert stored.status == SubscriptionStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_only_newest_subscription_is_considered(
        self, session_factory, create_tenant, create_subscription
    ):
        tenant = await create_tenant()
        old = await create_subscription(
            tenant.id,
            trial_end_date=FIXED_NOW - timedelta(days=20),
            created_at=FIXED_NOW - timedelta(days=40),
        )
        await create_subscription(
            tenant.id,
            status=SubscriptionStatus.ACTIVE,
            created_at=FIXED_NOW - timedelta(days=5),
        )

        assert await reconcile(session_factory, tenant.id) is True

        stored = await reload(session_factory, Subscription, old.id)
        assert stored.status == SubscriptionStatus.TRIAL

    @pytest.mark.asyncio
    async def test_cancelled_subscription_is_not_active(
        self, session_factory, create_tenant, create_subscription
    ):
        tenant = await create_tenant()
        await create_subscription(tenant.id, status=SubscriptionStatus.CANCELLED)

        assert await reconcile(session_factory, tenant.id) is False

    @pytest.mark.asyncio
    async def test_tenant_without_subscription(self, session_factory, create_tenant):
        tenant = await create_tenant()

        assert await reconcile(session_factory, tenant.id) is False
