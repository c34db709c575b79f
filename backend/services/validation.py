"""Input validation for export paths, client addresses, and permissions.

Every mutating operation runs these checks on all affected fields before
any file is read or written. The ``is_valid_*`` predicates are pure; the
``validate_*`` helpers raise ValidationError with a user-facing message.
"""

import re

# --- Validation patterns ---
_OCTET = r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)"

# IPv4 dotted quad with an optional /0-32 prefix length
_ADDRESS_RE = re.compile(rf"(?:{_OCTET}\.){{3}}{_OCTET}(?:/(?:[0-9]|[1-2][0-9]|3[0-2]))?")

# Characters that are never allowed in an export path, control characters included
_FORBIDDEN_PATH_CHARS_RE = re.compile(r'[<>:"|?*\x00-\x1f\x7f]')

# Backup snapshot filenames: exports-<timestamp>.bak, no separators
_BACKUP_NAME_RE = re.compile(r"exports-[A-Za-z0-9_\-]+\.bak")

PERMISSIONS = ("ro", "rw")


class ValidationError(ValueError):
    """Raised when a path, address, permission, or filename fails validation."""


def is_valid_path(path: object) -> bool:
    if not path or not isinstance(path, str):
        return False
    if ".." in path or "//" in path:
        return False
    return path.startswith("/") and not _FORBIDDEN_PATH_CHARS_RE.search(path)


def is_valid_address(address: object) -> bool:
    return isinstance(address, str) and _ADDRESS_RE.fullmatch(address) is not None


def is_valid_permission(permission: object) -> bool:
    return permission in PERMISSIONS


def validate_path(path: str) -> str:
    """Validate and return an absolute export path."""
    if not is_valid_path(path):
        raise ValidationError(
            f"Invalid path: {path!r}. "
            'Must be absolute, without "..", "//", control characters or any of <>:"|?*'
        )
    return path


def validate_address(address: str) -> str:
    """Validate and return an IPv4 address or CIDR block."""
    if not is_valid_address(address):
        raise ValidationError(
            f"Invalid IP address: {address!r}. Must be IPv4 (a.b.c.d) or CIDR (a.b.c.d/nn)"
        )
    return address


def validate_permission(permission: str) -> str:
    if not is_valid_permission(permission):
        raise ValidationError(f'Invalid permission: {permission!r}. Use "ro" or "rw"')
    return permission


def validate_clients(clients: list[dict]) -> list[dict]:
    """Validate a full client list and return it normalized to {ip, permission}.

    The list must be non-empty and must not name the same address twice.
    """
    if not clients:
        raise ValidationError("At least one client must be specified")

    normalized = []
    seen: set[str] = set()
    for client in clients:
        ip = validate_address(client.get("ip"))
        permission = validate_permission(client.get("permission"))
        if ip in seen:
            raise ValidationError(f"Duplicate client IP address: {ip}")
        seen.add(ip)
        normalized.append({"ip": ip, "permission": permission})
    return normalized


def validate_backup_filename(filename: str) -> str:
    """Validate a backup snapshot filename (exports-<timestamp>.bak)."""
    if not filename or not _BACKUP_NAME_RE.fullmatch(filename):
        raise ValidationError(f"Invalid backup filename: {filename!r}")
    return filename
