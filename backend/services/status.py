"""Host and NFS service status for the dashboard.

Service state comes from systemctl; uptime and memory are read from /proc
like the rest of the system info endpoints. Nothing here is fatal: a value
that cannot be determined is reported as "unknown".
"""

import logging
import shutil

from services.cmd import run_cmd

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def _format_bytes(n: float) -> str:
    """1288490188 -> "1.2G", like ``free -h``."""
    units = ("B", "K", "M", "G", "T")
    i = 0
    while n >= 1024 and i < len(units) - 1:
        n /= 1024
        i += 1
    return f"{n:.1f}{units[i]}"


def _format_uptime(seconds: int) -> str:
    """Human uptime in the style of ``uptime -p``."""
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    parts = []
    if days:
        parts.append(f"{days} day{'s' if days != 1 else ''}")
    if hours:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if minutes or not parts:
        parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
    return "up " + ", ".join(parts)


def read_uptime() -> str:
    try:
        with open("/proc/uptime") as f:
            return _format_uptime(int(float(f.read().split()[0])))
    except (FileNotFoundError, ValueError, IndexError):
        return UNKNOWN


def read_memory() -> str:
    """Used/total memory from /proc/meminfo, e.g. "1.2G/7.8G"."""
    total = available = None
    try:
        with open("/proc/meminfo") as f:
            for line in f:
                if line.startswith("MemTotal:"):
                    total = int(line.split()[1]) * 1024  # kB to bytes
                elif line.startswith("MemAvailable:"):
                    available = int(line.split()[1]) * 1024
    except (FileNotFoundError, ValueError, IndexError):
        return UNKNOWN
    if total is None or available is None:
        return UNKNOWN
    return f"{_format_bytes(total - available)}/{_format_bytes(total)}"


def read_disk_usage(path: str = "/") -> str:
    """Percentage of the filesystem in use, e.g. "42%"."""
    try:
        usage = shutil.disk_usage(path)
    except OSError:
        return UNKNOWN
    if not usage.total:
        return UNKNOWN
    return f"{round(usage.used / usage.total * 100)}%"


async def service_state(service: str, timeout: float) -> tuple[str, bool]:
    """Return (active state, enabled) for a systemd unit.

    ``systemctl is-active`` exits non-zero for inactive units but still
    prints the state, so stdout is used whenever present.
    """
    active_out, _, active_rc = await run_cmd(["systemctl", "is-active", service], timeout=timeout)
    enabled_out, _, enabled_rc = await run_cmd(["systemctl", "is-enabled", service], timeout=timeout)

    status = active_out.strip() if active_rc not in (124, 127) and active_out.strip() else UNKNOWN
    enabled = enabled_rc not in (124, 127) and enabled_out.strip() == "enabled"
    if status == UNKNOWN:
        logger.warning("Could not determine state of %s", service)
    return status, enabled


async def get_status(
    exports_count: int,
    warnings_count: int,
    service: str = "nfs-kernel-server",
    timeout: float = 10.0,
) -> dict:
    """Merge NFS service state, host metrics, and export counts."""
    status, enabled = await service_state(service, timeout)
    return {
        "nfsServer": {
            "status": status,
            "enabled": enabled,
        },
        "system": {
            "uptime": read_uptime(),
            "memory": read_memory(),
            "diskUsage": read_disk_usage("/"),
        },
        "exports": {
            "count": exports_count,
            "warnings": warnings_count,
        },
        "activeExports": f"{exports_count} exports configured",
    }
