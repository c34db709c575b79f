"""Backup snapshots of the exports configuration document.

A snapshot is a byte-for-byte copy of the live document stored as
``<backup_dir>/exports-<timestamp>.bak``. The timestamp is the UTC time with
``:`` and ``.`` replaced by ``-`` and a fixed width, so sorting filenames
sorts snapshots chronologically. Snapshots are never modified after they
are written; only retention pruning and explicit deletes remove them.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from exceptions import BackupError, BackupNotFoundError, from_os_error
from services.config_store import ConfigStore
from services.validation import validate_backup_filename

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "exports-"
BACKUP_SUFFIX = ".bak"
DEFAULT_RETENTION = 10


def snapshot_name(moment: datetime) -> str:
    """exports-2026-01-31T12-00-00-123456Z.bak for the given UTC moment."""
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond:06d}Z"
    return f"{BACKUP_PREFIX}{stamp}{BACKUP_SUFFIX}"


def _is_snapshot(name: str) -> bool:
    return name.startswith(BACKUP_PREFIX) and name.endswith(BACKUP_SUFFIX)


class BackupManager:
    """Take, list, prune, and delete snapshots of a ConfigStore's file."""

    def __init__(
        self,
        directory: Path,
        store: ConfigStore,
        retention: int = DEFAULT_RETENTION,
    ) -> None:
        self.directory = Path(directory)
        self.store = store
        self.retention = retention
        self._last_moment: datetime | None = None

    def ensure_directory(self) -> None:
        """Create the backup directory if it does not exist (idempotent)."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise from_os_error(e, "Cannot create backup directory", default=BackupError)

    def _next_moment(self) -> datetime:
        moment = datetime.now(timezone.utc)
        if self._last_moment is not None and moment <= self._last_moment:
            moment = self._last_moment + timedelta(microseconds=1)
        return moment

    def snapshot(self) -> str:
        """Copy the live document into a new snapshot and prune old ones.

        Returns the snapshot filename. Raises BackupError if the copy cannot
        be completed; callers must not mutate the document in that case.
        """
        self.ensure_directory()
        try:
            content = self.store.read_bytes()
        except OSError as e:
            raise from_os_error(e, "Backup failed, cannot read configuration", default=BackupError)

        moment = self._next_moment()
        while True:
            name = snapshot_name(moment)
            try:
                with open(self.directory / name, "xb") as f:
                    f.write(content)
                    f.flush()
                    os.fsync(f.fileno())
                break
            except FileExistsError:
                moment += timedelta(microseconds=1)
            except OSError as e:
                raise from_os_error(e, "Backup failed", default=BackupError)
        self._last_moment = moment

        logger.info("Backup created: %s", name)
        self.prune()
        return name

    def _snapshot_names(self) -> list[str]:
        """Snapshot filenames, newest first."""
        try:
            names = [n for n in os.listdir(self.directory) if _is_snapshot(n)]
        except FileNotFoundError:
            return []
        return sorted(names, reverse=True)

    def prune(self) -> list[str]:
        """Delete snapshots beyond the retention count. Returns the removed names.

        Failures are logged and skipped.
        """
        removed = []
        for name in self._snapshot_names()[self.retention:]:
            try:
                (self.directory / name).unlink()
                removed.append(name)
            except OSError as e:
                logger.warning("Failed to prune backup %s: %s", name, e)
        if removed:
            logger.info("Pruned %d old backup(s)", len(removed))
        return removed

    def list_backups(self) -> list[dict]:
        """All snapshots as [{filename, size, created}], newest first."""
        self.ensure_directory()
        backups = []
        for name in self._snapshot_names():
            try:
                st = (self.directory / name).stat()
            except FileNotFoundError:
                # Pruned or deleted between listdir and stat
                continue
            backups.append({
                "filename": name,
                "size": st.st_size,
                "created": datetime.fromtimestamp(st.st_mtime, timezone.utc).isoformat(),
            })
        return backups

    def _path_for(self, filename: str) -> Path:
        return self.directory / validate_backup_filename(filename)

    def exists(self, filename: str) -> bool:
        return self._path_for(filename).is_file()

    def read(self, filename: str) -> bytes:
        """Raw content of a snapshot."""
        try:
            return self._path_for(filename).read_bytes()
        except OSError as e:
            raise from_os_error(
                e, f"Cannot read backup {filename}",
                default=BackupError, not_found=BackupNotFoundError,
            )

    def delete(self, filename: str) -> None:
        """Remove a single snapshot."""
        try:
            self._path_for(filename).unlink()
        except OSError as e:
            raise from_os_error(
                e, f"Cannot delete backup {filename}",
                default=BackupError, not_found=BackupNotFoundError,
            )
        logger.info("Deleted backup %s", filename)
