"""Shared command runner for host status queries (systemctl and friends).

All subprocess calls go through run_cmd(). A semaphore limits concurrent
subprocesses and every call is bounded by a timeout.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

# Limit concurrent status subprocesses
_cmd_semaphore = asyncio.Semaphore(4)


async def run_cmd(cmd: list[str], timeout: float = DEFAULT_TIMEOUT) -> tuple[str, str, int]:
    """Run a command with concurrency limiting and a timeout.

    Returns (stdout, stderr, returncode). A missing binary returns 127 and
    a timed-out command is killed and returns 124, mirroring coreutils
    ``timeout``.
    """
    async with _cmd_semaphore:
        logger.debug("Running command: %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            binary = cmd[0] if cmd else "(empty)"
            logger.error("Command not found: %s", binary)
            return "", f"{binary}: command not found", 127
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.error("Command timed out after %ss: %s", timeout, " ".join(cmd))
            return "", f"{cmd[0]}: timed out after {timeout}s", 124
        return stdout.decode(), stderr.decode(), proc.returncode
