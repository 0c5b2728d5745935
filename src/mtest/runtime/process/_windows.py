# src/mtest/runtime/process/_windows.py

"""
Process handling for Windows, where process groups cannot be signalled.
"""

import asyncio
import subprocess
from typing import Any

import structlog

from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.process")


def configure(popen_kwargs: dict[str, Any]) -> dict[str, Any]:
    """Starts the child in a new process group."""
    log.debug("Configuring Windows process attributes for command")
    popen_kwargs["creationflags"] = popen_kwargs.get("creationflags", 0) | subprocess.CREATE_NEW_PROCESS_GROUP
    return popen_kwargs


async def terminate(process: asyncio.subprocess.Process | None) -> None:
    """Forcefully kills the process."""
    if process is None or process.returncode is not None:
        return
    log.debug("Terminating process on Windows", pid=process.pid)
    try:
        process.kill()
    except ProcessLookupError:
        pass


# 🔼⚙️
