#
# src/mtest/runtime/supervisor.py
#
"""
Builds and launches the `meteor test-packages` subprocess using asyncio.subprocess.
"""

import asyncio
import os
import sys

import structlog

from mtest.config import RunConfig
from mtest.exceptions import SubprocessStartError
from mtest.runtime import process as platform_process
from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.supervisor")

METEOR_EXECUTABLE = "meteor"
DRIVER_PACKAGE = "test-in-console"
# Meteor prints long bundler lines; the asyncio default of 64 KiB is too small.
STREAM_LIMIT = 1024 * 1024


def build_args(config: RunConfig, port: int) -> list[str]:
    """Returns the `meteor` arguments for a run, flags in a fixed order."""
    args = ["test-packages", "--driver-package", DRIVER_PACKAGE, "-p", str(port), config.package_name]
    if config.once:
        args.append("--once")
    if config.release:
        args += ["--release", config.release]
    if config.inspect:
        args.append("--inspect")
    if config.inspect_brk:
        args.append("--inspect-brk")
    if config.settings_path:
        args += ["--settings", str(config.settings_path)]
    if config.test_app_path:
        args += ["--test-app-path", str(config.test_app_path)]
    return args


def build_command(config: RunConfig, port: int, platform: str | None = None) -> list[str]:
    """
    Returns the full command line for the Meteor subprocess.

    On Windows `meteor` is a batch shim, so it is run through the command
    interpreter named by COMSPEC.
    """
    platform = platform or sys.platform
    args = build_args(config, port)
    if platform == "win32":
        comspec = os.environ.get("COMSPEC") or "cmd.exe"
        return [comspec, "/c", METEOR_EXECUTABLE, *args]
    return [METEOR_EXECUTABLE, *args]


async def start(config: RunConfig, port: int) -> asyncio.subprocess.Process:
    """
    Spawns the Meteor subprocess in its own process group and returns immediately.

    Stdin is inherited from this process; stdout and stderr are pipes the
    caller must drain.

    Raises:
        SubprocessStartError: If the command cannot be executed.
    """
    command = build_command(config, port)
    start_log = log.bind(command=" ".join(command))
    start_log.debug("Initialising meteor command")

    popen_kwargs = platform_process.configure({})
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
            **popen_kwargs,
        )
    except FileNotFoundError as e:
        start_log.error("Meteor executable not found", command_executable=command[0])
        raise SubprocessStartError(command, e) from e
    except OSError as e:
        start_log.error("Failed to spawn meteor process", error=str(e))
        raise SubprocessStartError(command, e) from e

    start_log.debug("Meteor process started", pid=proc.pid)
    return proc


async def terminate(proc: asyncio.subprocess.Process | None) -> None:
    """Stops the subprocess and its children. A None or exited handle is a no-op."""
    await platform_process.terminate(proc)


# 🔼⚙️
