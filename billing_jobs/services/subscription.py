"""
Subscription status reconciliation.
"""

import logging
from typing import Callable, Optional
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billing_jobs.models import Subscription, SubscriptionStatus, Tenant, TenantStatus
from billing_jobs.utils import utcnow

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Applies time-based subscription transitions for a tenant."""

    def __init__(self, db: AsyncSession, now: Optional[Callable[[], datetime]] = None):
        self.db = db
        self._now = now or utcnow

    async def check_subscription_status(self, tenant_id: int) -> bool:
        """
        Expire the tenant's newest subscription when its trial or term has ended.

        A Trial whose trial end date has passed, or any subscription whose
        expires_at has passed, becomes Expired and the tenant becomes Expired.

        Args:
            tenant_id: Tenant to reconcile

        Returns:
            True if the tenant's subscription is still Active or Trial
        """
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.tenant_id == tenant_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(1)
        )
        subscription = result.scalar_one_or_none()
        if subscription is None:
            return False

        now = self._now()
        trial_over = (
            subscription.status == SubscriptionStatus.TRIAL
            and subscription.trial_end_date is not None
            and now > subscription.trial_end_date
        )
        term_over = subscription.expires_at is not None and now > subscription.expires_at

        if trial_over or term_over:
            await self._expire(subscription, tenant_id, now)
            return False

        return subscription.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL)

    async def _expire(self, subscription: Subscription, tenant_id: int, now: datetime) -> None:
        if subscription.status != SubscriptionStatus.EXPIRED:
            logger.info(f"Subscription {subscription.id} of tenant {tenant_id} expired")
        subscription.status = SubscriptionStatus.EXPIRED
        subscription.updated_at = now

        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is not None:
            tenant.status = TenantStatus.EXPIRED

        await self.db.commit()
