"""Export and client mutations on the configuration document.

Every mutating call follows the same sequence:

1. validate all input (no I/O on failure)
2. take a backup snapshot (abort on failure)
3. reload the document from disk
4. apply the change in memory
5. atomically save the document
6. wait for the external config manager to pick the change up

Steps 2-5 run under a per-document asyncio lock so concurrent requests
cannot lose each other's updates.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from exceptions import ExportConflictError, ExportNotFoundError
from services.backups import BackupManager
from services.config_store import ConfigStore
from services.validation import (
    ValidationError,
    validate_address,
    validate_clients,
    validate_path,
    validate_permission,
)

logger = logging.getLogger(__name__)

DEFAULT_APPLY_DELAY = 1.0

_document_locks: dict[str, asyncio.Lock] = {}


async def wait_for_apply(delay: float) -> None:
    """Give the external config manager time to apply a newly saved document."""
    if delay > 0:
        await asyncio.sleep(delay)


def document_lock(path: Path) -> asyncio.Lock:
    """The lock guarding read-modify-write cycles on one document."""
    key = str(Path(path).resolve())
    lock = _document_locks.get(key)
    if lock is None:
        lock = _document_locks[key] = asyncio.Lock()
    return lock


def _find_export(document: dict, path: str) -> int:
    for index, export in enumerate(document["exports"]):
        if export["path"] == path:
            return index
    raise ExportNotFoundError(f"Export not found: {path}")


class ExportService:
    """Create, update, and delete exports and their client entries."""

    def __init__(
        self,
        store: ConfigStore,
        backups: BackupManager,
        apply_delay: float = DEFAULT_APPLY_DELAY,
        require_existing_paths: bool = True,
    ) -> None:
        self.store = store
        self.backups = backups
        self.apply_delay = apply_delay
        self.require_existing_paths = require_existing_paths

    async def list_exports(self) -> tuple[list[dict], list[str]]:
        """Return (exports, warnings) from the current document."""
        document, warnings = self.store.load()
        return document["exports"], warnings

    async def _mutate(self, change: Callable[[dict], dict]) -> dict:
        """Run ``change`` on the freshly loaded document inside the backup/save cycle.

        ``change`` mutates the document in place and returns the response
        body; the backup filename is added to it.
        """
        async with document_lock(self.store.path):
            backup = self.backups.snapshot()
            document, _ = self.store.load()
            result = change(document)
            self.store.save(document)
        await wait_for_apply(self.apply_delay)
        result["backup"] = backup
        return result

    async def create_export(self, path: str, clients: list[dict]) -> dict:
        validate_path(path)
        clients = validate_clients(clients)
        if self.require_existing_paths and not Path(path).exists():
            raise ValidationError(f"Path does not exist: {path}")

        def change(document: dict) -> dict:
            if any(export["path"] == path for export in document["exports"]):
                raise ExportConflictError(f"Export already exists: {path}")
            export = {"path": path, "clients": clients, "metadata": {}}
            document["exports"].append(export)
            return {"message": "Export created successfully", "export": export}

        result = await self._mutate(change)
        logger.info("Created NFS export %s for %d client(s)", path, len(clients))
        return result

    async def replace_clients(self, path: str, clients: list[dict]) -> dict:
        """Replace an export's whole client list."""
        validate_path(path)
        clients = validate_clients(clients)

        def change(document: dict) -> dict:
            export = document["exports"][_find_export(document, path)]
            export["clients"] = clients
            return {"message": "Export updated successfully", "export": export}

        result = await self._mutate(change)
        logger.info("Updated NFS export %s: %d client(s)", path, len(clients))
        return result

    async def delete_export(self, path: str) -> dict:
        validate_path(path)

        def change(document: dict) -> dict:
            del document["exports"][_find_export(document, path)]
            return {"message": "Export deleted successfully"}

        result = await self._mutate(change)
        logger.info("Deleted NFS export %s", path)
        return result

    async def add_client(self, path: str, ip: str, permission: str) -> dict:
        validate_path(path)
        validate_address(ip)
        validate_permission(permission)

        def change(document: dict) -> dict:
            export = document["exports"][_find_export(document, path)]
            if any(client["ip"] == ip for client in export["clients"]):
                raise ExportConflictError(f"IP address already exists for this export: {ip}")
            export["clients"].append({"ip": ip, "permission": permission})
            return {"message": "IP address added successfully", "export": export}

        result = await self._mutate(change)
        logger.info("Added client %s(%s) to NFS export %s", ip, permission, path)
        return result

    async def remove_client(self, path: str, ip: str) -> dict:
        """Remove one client; the export itself goes when its last client does."""
        validate_path(path)
        if not ip:
            raise ValidationError("IP address is required")

        def change(document: dict) -> dict:
            index = _find_export(document, path)
            export = document["exports"][index]
            remaining = [client for client in export["clients"] if client["ip"] != ip]
            if len(remaining) == len(export["clients"]):
                raise ExportNotFoundError(f"IP address not found for this export: {ip}")
            if not remaining:
                del document["exports"][index]
                return {"message": "IP address removed and export deleted (no clients remaining)"}
            export["clients"] = remaining
            return {"message": "IP address removed successfully", "export": export}

        result = await self._mutate(change)
        logger.info("Removed client %s from NFS export %s", ip, path)
        return result
