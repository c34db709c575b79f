"""FastAPI dependencies that build the service objects from settings.

Each is cached so the whole app shares one instance; tests swap them out
through ``app.dependency_overrides``.
"""

from functools import lru_cache

from config import settings
from services.backups import BackupManager
from services.config_store import ConfigStore
from services.exports import ExportService
from services.restore import RestoreService


@lru_cache
def get_config_store() -> ConfigStore:
    return ConfigStore(settings.config_file)


@lru_cache
def get_backup_manager() -> BackupManager:
    return BackupManager(settings.backup_dir, get_config_store(), retention=settings.max_backups)


@lru_cache
def get_export_service() -> ExportService:
    return ExportService(
        get_config_store(),
        get_backup_manager(),
        apply_delay=settings.apply_delay,
        require_existing_paths=settings.require_existing_paths,
    )


@lru_cache
def get_restore_service() -> RestoreService:
    return RestoreService(get_config_store(), get_backup_manager(), apply_delay=settings.apply_delay)
