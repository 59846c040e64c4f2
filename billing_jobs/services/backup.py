"""
Backup service producing per-tenant snapshot archives.

This module provides the BackupService class that:
1. Snapshots a tenant's rows (tenant, subscriptions, sales, settings) as JSON
2. Writes them with a manifest into a zip archive via BackupStorage
3. Optionally exports a copy, requests an upload, or emits a notification
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billing_jobs.config import settings
from billing_jobs.models import Sale, Setting, Subscription, Tenant
from billing_jobs.schemas import BackupArtifact, BackupManifest, RecordCounts
from billing_jobs.services.automation import AutomationEvents, AutomationProvider
from billing_jobs.services.storage import BackupError, BackupStorage

logger = logging.getLogger(__name__)


def _row_to_dict(row: Any) -> Dict[str, Any]:
    return {column.name: getattr(row, column.key) for column in row.__table__.columns}


def _dump(rows: List[Dict[str, Any]]) -> bytes:
    return json.dumps(rows, default=str, indent=2).encode("utf-8")


class BackupService:
    """Creates and manages tenant backup archives."""

    def __init__(
        self,
        db: AsyncSession,
        storage: BackupStorage,
        automation: Optional[AutomationProvider] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize backup service.

        Args:
            db: Async database session used for the snapshot queries
            storage: Archive storage
            automation: Provider for BackupCompleted notifications
            now: Clock used to stamp archives (local time)
        """
        self.db = db
        self.storage = storage
        self.automation = automation
        self._now = now or datetime.now

    async def create_full_backup(
        self,
        tenant_id: int,
        export_to_desktop: bool = False,
        upload_to_google_drive: bool = False,
        send_email: bool = False
    ) -> str:
        """
        Snapshot one tenant into a new archive.

        Args:
            tenant_id: Tenant to back up
            export_to_desktop: Also copy the archive into BACKUP_EXPORT_DIR
            upload_to_google_drive: Request an off-site upload
            send_email: Emit a BackupCompleted notification

        Returns:
            File name of the archive, relative to the storage root

        Raises:
            BackupError: If the tenant does not exist or the archive cannot be written
        """
        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise BackupError(f"Tenant {tenant_id} not found")

        subscriptions = await self._fetch(
            select(Subscription).where(Subscription.tenant_id == tenant_id).order_by(Subscription.id)
        )
        sales = await self._fetch(
            select(Sale).where(Sale.tenant_id == tenant_id).order_by(Sale.id)
        )
        tenant_settings = await self._fetch(
            select(Setting).where(Setting.owner_id == tenant_id).order_by(Setting.key)
        )

        created = self._now()
        manifest = BackupManifest(
            backup_date=created,
            app_version=settings.APP_VERSION,
            database_type=self.db.get_bind().dialect.name,
            tenant_id=tenant_id,
            record_counts=RecordCounts(
                tenants=1,
                subscriptions=len(subscriptions),
                sales=len(sales),
                settings=len(tenant_settings),
            ),
        )
        entries = {
            "manifest.json": manifest.model_dump_json(by_alias=True, indent=2).encode("utf-8"),
            "data/tenant.json": _dump([_row_to_dict(tenant)]),
            "data/subscriptions.json": _dump(subscriptions),
            "data/sales.json": _dump(sales),
            "data/settings.json": _dump(tenant_settings),
        }

        file_name = self.storage.archive_name(tenant_id, created)
        await asyncio.to_thread(self.storage.write_archive, file_name, entries)
        logger.info(f"Backup created for tenant {tenant_id}: {file_name}")

        if export_to_desktop:
            await asyncio.to_thread(self.storage.export_copy, file_name)
        if upload_to_google_drive:
            logger.warning(f"Off-site upload requested for {file_name} but no uploader is configured")
        if send_email and self.automation is not None:
            await self.automation.notify(
                AutomationEvents.BACKUP_COMPLETED,
                tenant_id,
                {"fileName": file_name, "backupDate": created}
            )

        return file_name

    async def list_backups(self) -> List[BackupArtifact]:
        """List stored archives, newest first."""
        return await asyncio.to_thread(self.storage.list_backups)

    async def delete_backup(self, file_name: str) -> bool:
        """Delete an archive by file name."""
        return await asyncio.to_thread(self.storage.delete_backup, file_name)

    async def _fetch(self, statement) -> List[Dict[str, Any]]:
        result = await self.db.execute(statement)
        return [_row_to_dict(row) for row in result.scalars().all()]
