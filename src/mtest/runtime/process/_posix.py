# src/mtest/runtime/process/_posix.py

"""
Process-group handling for POSIX platforms.
"""

import asyncio
import os
import signal
from typing import Any

import structlog

from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.process")

TERMINATE_GRACE_SECONDS = 0.3


def configure(popen_kwargs: dict[str, Any]) -> dict[str, Any]:
    """Starts the child in a new session so it leads its own process group."""
    log.debug("Configuring POSIX process attributes for command")
    popen_kwargs["start_new_session"] = True
    return popen_kwargs


def _process_group(pid: int) -> int | None:
    try:
        pgid = os.getpgid(pid)
    except ProcessLookupError:
        return None
    # Never signal our own group.
    if pgid <= 0 or pgid == os.getpgrp():
        return None
    return pgid


async def terminate(process: asyncio.subprocess.Process | None) -> None:
    """Sends SIGTERM to the process group, then SIGKILL after a short grace period."""
    if process is None or process.returncode is not None:
        return

    log.debug("Terminating process tree", pid=process.pid)

    pgid = _process_group(process.pid)
    if pgid is not None:
        log.debug("Sending SIGTERM to process group", pgid=pgid)
        try:
            os.killpg(pgid, signal.SIGTERM)
        except ProcessLookupError:
            return
        await asyncio.sleep(TERMINATE_GRACE_SECONDS)
        log.debug("Sending SIGKILL to process group", pgid=pgid)
        try:
            os.killpg(pgid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        return

    log.debug("Sending SIGTERM to individual process", pid=process.pid)
    try:
        process.terminate()
    except ProcessLookupError:
        return
    except OSError:
        log.debug("SIGTERM failed, escalating to SIGKILL", pid=process.pid)
        try:
            process.kill()
        except ProcessLookupError:
            pass


# 🔼⚙️
