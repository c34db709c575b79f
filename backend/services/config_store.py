"""JSON configuration document holding the NFS export definitions.

The document lives at a single path (default /etc/nfs-web-ui/exports.json)
and is watched by an external config manager that applies it to the NFS
server. This module never touches /etc/exports itself.

Document shape::

    {
      "exports": [
        {"path": "/srv/data", "clients": [{"ip": "10.0.0.0/24", "permission": "rw"}],
         "metadata": {}}
      ],
      "metadata": {"lastModified": "2026-01-01T00:00:00.000Z"}
    }
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from exceptions import from_os_error
from services.validation import is_valid_address, is_valid_path, is_valid_permission

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = "1.0"


def iso_now() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def empty_document(description: str = "NFS exports managed by NFS Manager") -> dict:
    """A fresh document with no exports."""
    now = iso_now()
    return {
        "exports": [],
        "metadata": {
            "created": now,
            "version": DOCUMENT_VERSION,
            "description": description,
            "lastModified": now,
        },
    }


def _validate_export(index: int, record: object, seen_paths: set[str]) -> tuple[dict | None, list[str]]:
    """Check one export record. Returns (clean record or None, diagnostics)."""
    label = f"Export {index + 1}"
    if (
        not isinstance(record, dict)
        or not is_valid_path(record.get("path"))
        or not isinstance(record.get("clients"), list)
    ):
        return None, [f"{label}: Invalid export configuration"]

    errors = []
    clients = []
    for client in record["clients"]:
        if not isinstance(client, dict) or not client.get("ip") or not client.get("permission"):
            errors.append(f"{label}: Invalid client configuration")
            continue
        if not is_valid_address(client["ip"]):
            errors.append(f"{label}: Invalid IP address: {client['ip']}")
            continue
        if not is_valid_permission(client["permission"]):
            errors.append(f"{label}: Invalid permission: {client['permission']}")
            continue
        clients.append({"ip": client["ip"], "permission": client["permission"]})

    if not clients:
        errors.append(f"{label}: No valid clients found")
        return None, errors

    path = record["path"]
    if path in seen_paths:
        errors.append(f"{label}: Duplicate export path: {path}")
        return None, errors
    seen_paths.add(path)

    metadata = record.get("metadata")
    return {
        "path": path,
        "clients": clients,
        "metadata": metadata if isinstance(metadata, dict) else {},
    }, errors


def _ordered(document: dict) -> dict:
    """Return the document with ``exports`` and ``metadata`` leading."""
    ordered = {"exports": document.get("exports", []), "metadata": document.get("metadata", {})}
    for key, value in document.items():
        if key not in ordered:
            ordered[key] = value
    return ordered


class ConfigStore:
    """Load, validate, and atomically rewrite the exports document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def initialize(self) -> bool:
        """Create an empty document if none exists. Returns True if one was written."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise from_os_error(e, f"Cannot create configuration directory {self.path.parent}")
        if self.path.exists():
            return False
        self.save(empty_document())
        logger.info("Created empty configuration at %s", self.path)
        return True

    def read_bytes(self) -> bytes:
        """Raw bytes of the live document, imperfections included."""
        return self.path.read_bytes()

    def load(self) -> tuple[dict, list[str]]:
        """Read and validate the document.

        Returns (document, warnings). Missing or unparseable files yield an
        empty document and a warning; invalid records are dropped with a
        warning each. Only unrecoverable I/O errors raise ConfigIOError.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning("Configuration file %s not found, returning empty exports", self.path)
            return {"exports": [], "metadata": {}}, ["Configuration file not found"]
        except UnicodeDecodeError:
            logger.warning("Configuration file %s is not valid UTF-8", self.path)
            return {"exports": [], "metadata": {}}, ["Configuration file is not valid JSON"]
        except OSError as e:
            raise from_os_error(e, "Failed to read configuration")

        try:
            config = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Configuration file %s is not valid JSON", self.path)
            return {"exports": [], "metadata": {}}, ["Configuration file is not valid JSON"]

        if not isinstance(config, dict) or not isinstance(config.get("exports"), list):
            return {"exports": [], "metadata": {}}, ["Configuration file is invalid or empty"]

        exports = []
        warnings = []
        seen_paths: set[str] = set()
        for index, record in enumerate(config["exports"]):
            export, errors = _validate_export(index, record, seen_paths)
            warnings.extend(errors)
            if export is not None:
                exports.append(export)

        if warnings:
            logger.warning("Configuration parsing warnings: %s", warnings)

        metadata = config.get("metadata")
        document = dict(config)
        document["exports"] = exports
        document["metadata"] = metadata if isinstance(metadata, dict) else {}
        return document, warnings

    def save(self, document: dict) -> dict:
        """Stamp lastModified and atomically replace the live document.

        The JSON is written to a temporary file in the same directory and
        renamed over the target, so readers never see a truncated file.
        """
        if not isinstance(document.get("metadata"), dict):
            document["metadata"] = {}
        document["metadata"]["lastModified"] = iso_now()
        payload = json.dumps(_ordered(document), indent=2) + "\n"

        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                if self.path.exists():
                    os.chmod(tmp_name, self.path.stat().st_mode & 0o777)
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            raise from_os_error(e, "Failed to write configuration")
        return document
