"""
Tenant registry queries.
"""

from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billing_jobs.models import Tenant, TenantStatus, BACKUP_ELIGIBLE_STATUSES


class TenantRegistry:
    """Looks up tenants by lifecycle status."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_tenant_ids(
        self,
        statuses: Iterable[TenantStatus] = BACKUP_ELIGIBLE_STATUSES
    ) -> List[int]:
        """
        List ids of tenants whose status is in `statuses`, ordered by id.

        Args:
            statuses: Accepted tenant statuses (Active and Trial by default)

        Returns:
            Tenant ids in ascending order
        """
        result = await self.db.execute(
            select(Tenant.id)
            .where(Tenant.status.in_(list(statuses)))
            .order_by(Tenant.id)
        )
        return list(result.scalars().all())


def get_tenant_registry(db: AsyncSession) -> TenantRegistry:
    """Factory function to create a tenant registry for a session."""
    return TenantRegistry(db)
