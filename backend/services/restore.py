"""Restore the exports configuration from a backup snapshot."""

import json
import logging

from exceptions import BackupNotFoundError
from services.backups import BackupManager
from services.config_store import ConfigStore, empty_document
from services.exports import DEFAULT_APPLY_DELAY, document_lock, wait_for_apply
from services.validation import validate_backup_filename

logger = logging.getLogger(__name__)


class RestoreService:
    def __init__(
        self,
        store: ConfigStore,
        backups: BackupManager,
        apply_delay: float = DEFAULT_APPLY_DELAY,
    ) -> None:
        self.store = store
        self.backups = backups
        self.apply_delay = apply_delay

    async def restore(self, filename: str) -> dict:
        """Overwrite the live document with a snapshot's content.

        The current state is snapshotted first so the restore can be undone.
        A snapshot that is not a JSON object (e.g. an old /etc/exports style
        backup) is replaced by an empty document instead of failing.
        """
        validate_backup_filename(filename)
        if not self.backups.exists(filename):
            raise BackupNotFoundError(f"Backup not found: {filename}")

        async with document_lock(self.store.path):
            # Read first: the pre-restore snapshot may prune the file being restored
            content = self.backups.read(filename)
            current_backup = self.backups.snapshot()
            try:
                document = json.loads(content)
            except (json.JSONDecodeError, UnicodeDecodeError):
                document = None
            if not isinstance(document, dict):
                logger.warning("Backup %s is not in JSON format, restoring empty config", filename)
                document = empty_document("NFS exports restored from backup")
            self.store.save(document)

        await wait_for_apply(self.apply_delay)

        logger.info("Restored configuration from %s (previous state in %s)", filename, current_backup)
        return {
            "message": "Backup restored successfully",
            "restored": filename,
            "currentBackup": current_backup,
        }
