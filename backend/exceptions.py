"""NFS Manager exception hierarchy.

Each exception carries the HTTP status code the API layer responds with.
Route handlers let these propagate; main.py maps them to JSON responses.
"""

import errno


class ExportsError(Exception):
    """Base exception for export configuration and backup failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ExportNotFoundError(ExportsError):
    """Export or client entry does not exist."""

    status_code = 404


class BackupNotFoundError(ExportsError):
    """Backup snapshot does not exist."""

    status_code = 404


class ExportConflictError(ExportsError):
    """Export path or client address already exists.

    Reported as 400 to keep the dashboard contract: the UI treats any
    duplicate as a bad request.
    """

    status_code = 400


class ConfigIOError(ExportsError):
    """Configuration document could not be read or written."""


class BackupError(ExportsError):
    """Backup snapshot could not be taken, so the mutation was aborted."""


def from_os_error(
    exc: OSError,
    message: str,
    default: type[ExportsError] = ConfigIOError,
    not_found: type[ExportsError] | None = None,
) -> ExportsError:
    """Build the domain exception for a filesystem failure.

    ``not_found`` is used for ENOENT when given; everything else becomes
    ``default``. The user-facing message is ``message`` plus the OS reason.
    """
    exc_class = default
    if not_found is not None and exc.errno == errno.ENOENT:
        exc_class = not_found
    reason = exc.strerror or str(exc)
    return exc_class(f"{message}: {reason}")
