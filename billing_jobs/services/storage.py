"""
Filesystem storage for tenant backup archives.

Archives are laid out as ``<root>/tenant_<id>/backup_<YYYYmmdd_HHMMSS>.zip``.
The file name handed to callers is the path relative to the root, so the
tenant is implied by where the archive lives.
"""

import logging
import os
import re
import shutil
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from billing_jobs.config import settings
from billing_jobs.schemas import BackupArtifact

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
_ARCHIVE_NAME = re.compile(r"backup_(\d{8}_\d{6})\.zip$")
_TENANT_DIR = re.compile(r"^tenant_(\d+)$")


class BackupError(Exception):
    """Raised when a backup archive cannot be written, found or removed."""
    pass


class BackupStorage:
    """Stores, lists and deletes backup archives under a root directory."""

    def __init__(self, root: str, export_dir: Optional[str] = None):
        """
        Args:
            root: Directory holding all archives
            export_dir: Optional directory receiving exported copies
        """
        self.root = Path(root)
        self.export_dir = Path(export_dir) if export_dir else None

    def archive_name(self, tenant_id: int, created: datetime) -> str:
        """Relative file name for a tenant archive created at `created`."""
        return f"tenant_{tenant_id}/backup_{created.strftime(TIMESTAMP_FORMAT)}.zip"

    def _resolve(self, file_name: str) -> Path:
        root = self.root.resolve()
        path = (root / file_name).resolve()
        if root not in path.parents:
            raise BackupError(f"Backup name escapes storage root: {file_name!r}")
        return path

    def write_archive(self, file_name: str, entries: Dict[str, bytes]) -> Path:
        """
        Write a new zip archive containing `entries`.

        Args:
            file_name: Relative archive name (see archive_name)
            entries: Mapping of member name to content

        Returns:
            Absolute path of the written archive

        Raises:
            BackupError: If the archive already exists or the name is invalid
        """
        path = self._resolve(file_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with zipfile.ZipFile(path, mode="x", compression=zipfile.ZIP_DEFLATED) as archive:
                for member, content in entries.items():
                    archive.writestr(member, content)
        except FileExistsError as e:
            raise BackupError(f"Backup already exists: {file_name}") from e
        return path

    def export_copy(self, file_name: str) -> Optional[Path]:
        """Copy an archive into the export directory, if one is configured."""
        if self.export_dir is None:
            logger.warning(f"Export requested for {file_name} but BACKUP_EXPORT_DIR is not set")
            return None
        source = self._resolve(file_name)
        self.export_dir.mkdir(parents=True, exist_ok=True)
        target = self.export_dir / source.name
        shutil.copy2(source, target)
        logger.info(f"Exported backup copy to {target}")
        return target

    def list_backups(self) -> List[BackupArtifact]:
        """
        List all archives, newest first.

        The creation date is taken from the timestamp in the file name and
        falls back to the file's modification time.
        """
        if not self.root.is_dir():
            return []

        artifacts = []
        for path in self.root.rglob("*.zip"):
            stat = path.stat()
            relative = path.relative_to(self.root).as_posix()

            match = _ARCHIVE_NAME.search(path.name)
            created = None
            if match:
                try:
                    created = datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
                except ValueError:
                    created = None
            if created is None:
                created = datetime.fromtimestamp(stat.st_mtime)

            tenant_match = _TENANT_DIR.match(path.parent.name)
            artifacts.append(BackupArtifact(
                file_name=relative,
                created_date=created,
                size_bytes=stat.st_size,
                tenant_id=int(tenant_match.group(1)) if tenant_match else None,
            ))

        artifacts.sort(key=lambda a: a.created_date, reverse=True)
        return artifacts

    def delete_backup(self, file_name: str) -> bool:
        """
        Delete an archive.

        Returns:
            True if a file was removed, False if it did not exist

        Raises:
            BackupError: If the name points outside the storage root
        """
        path = self._resolve(file_name)
        if not path.is_file():
            return False
        os.remove(path)
        return True


def get_backup_storage() -> BackupStorage:
    """Factory function to create storage from application settings."""
    return BackupStorage(settings.BACKUP_DIR, settings.BACKUP_EXPORT_DIR)
