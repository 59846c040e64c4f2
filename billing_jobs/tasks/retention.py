"""
Age-based pruning of backup archives.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from billing_jobs.services.storage import BackupStorage

logger = logging.getLogger(__name__)


class RetentionPruner:
    """Deletes archives older than the retention window."""

    def __init__(self, storage: BackupStorage, now: Optional[Callable[[], datetime]] = None):
        self.storage = storage
        self._now = now or datetime.now

    async def prune(self, retention_days: int) -> List[str]:
        """
        Delete every archive created before ``now - retention_days``.

        An archive exactly `retention_days` old is kept. Failures are logged
        and never raised.

        Returns:
            File names that were deleted
        """
        try:
            artifacts = await asyncio.to_thread(self.storage.list_backups)
        except Exception as e:
            logger.error(f"Could not list backups for pruning: {e}", exc_info=True)
            return []

        cutoff = self._now() - timedelta(days=retention_days)
        deleted = []
        for artifact in artifacts:
            if artifact.created_date >= cutoff:
                continue
            try:
                if await asyncio.to_thread(self.storage.delete_backup, artifact.file_name):
                    deleted.append(artifact.file_name)
                    logger.info(f"Deleted old backup: {artifact.file_name}")
            except Exception as e:
                logger.error(f"Could not delete backup {artifact.file_name}: {e}", exc_info=True)

        return deleted
