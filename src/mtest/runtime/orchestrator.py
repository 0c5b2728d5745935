# src/mtest/runtime/orchestrator.py

"""
High-level coordinator for an mtest run.
Owns the Meteor subprocess, the browser session and the exit decision.
"""

import asyncio
import sys
from collections.abc import Callable
from enum import Enum, auto
from typing import BinaryIO

import structlog
from rich.console import Console

from mtest.browser import BrowserSession
from mtest.config import RunConfig
from mtest.exceptions import PortExhaustedError, SubprocessExitError, SubprocessStartError
from mtest.runtime import supervisor
from mtest.runtime.output import stream_output
from mtest.runtime.ports import resolve_port
from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.orchestrator")

# Output relays normally end at EOF right after termination; this bounds the wait
# when a surviving grandchild still holds a pipe open.
RELAY_DRAIN_TIMEOUT_SECONDS = 2.0

SessionFactory = Callable[..., BrowserSession]


class RunPhase(Enum):
    """Lifecycle phases of a run."""

    STARTING = auto()
    PORT_RESOLVED = auto()
    SUBPROCESS_RUNNING = auto()
    CYCLING = auto()  # Watch mode, at least one result seen.
    TERMINAL = auto()


class TestRunOrchestrator:
    """Runs Meteor, starts the browser once the test server is up and decides the exit code."""

    __test__ = False

    def __init__(
        self,
        config: RunConfig,
        console: Console | None = None,
        session_factory: SessionFactory = BrowserSession,
        stdout_sink: BinaryIO | None = None,
        stderr_sink: BinaryIO | None = None,
    ):
        self.config = config
        self.console = console or Console(soft_wrap=True)
        self.session_factory = session_factory
        self.stdout_sink = stdout_sink
        self.stderr_sink = stderr_sink
        self.phase = RunPhase.STARTING
        self.port: int | None = None
        self.process: asyncio.subprocess.Process | None = None
        self.results: asyncio.Queue[int] = asyncio.Queue(maxsize=1)
        self.session: BrowserSession | None = None
        self._cancel_event = asyncio.Event()
        self._exit_task: asyncio.Task[int] | None = None
        self._relay_tasks: list[asyncio.Task[None]] = []
        self._browser_task: asyncio.Task[None] | None = None
        self._shutdown_task: asyncio.Future[None] | None = None

    async def run(self, shutdown_event: asyncio.Event) -> int:
        """Main execution method. Returns the process exit code."""
        log.debug("Starting run", package=self.config.package_name, once=self.config.once)
        try:
            return await self._run(shutdown_event)
        finally:
            self._cancel_event.set()
            self.phase = RunPhase.TERMINAL

    async def _run(self, shutdown_event: asyncio.Event) -> int:
        try:
            self.port = await asyncio.to_thread(resolve_port, self.config.port)
        except PortExhaustedError as e:
            log.error("Failed to determine a free port", error=str(e))
            return 1
        self.phase = RunPhase.PORT_RESOLVED
        log.debug("Port reservation complete", port=self.port)

        try:
            self.process = await supervisor.start(self.config, self.port)
        except SubprocessStartError as e:
            log.error("Failed to start meteor", error=str(e), command=" ".join(e.command))
            return 1
        self.phase = RunPhase.SUBPROCESS_RUNNING
        log.info("Meteor process started", port=self.port, pid=self.process.pid)

        self._start_relays(self.process)
        self._exit_task = asyncio.create_task(self.process.wait(), name="mtest-meteor-wait")

        shutdown_task = asyncio.create_task(shutdown_event.wait(), name="mtest-shutdown-wait")
        result_task: asyncio.Task[int] | None = None
        try:
            while True:
                result_task = asyncio.create_task(self.results.get(), name="mtest-result-wait")
                done, _ = await asyncio.wait(
                    {shutdown_task, self._exit_task, result_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if shutdown_task in done:
                    log.info("Signal received, shutting down")
                    return 0

                if self._exit_task in done:
                    return self._exit_code(self._exit_task)

                code = result_task.result()
                log.info("Tests finished", status=code)
                if self.config.once:
                    return code
                self.phase = RunPhase.CYCLING
                log.debug("Test run completed in watch mode; awaiting next cycle")
        finally:
            shutdown_task.cancel()
            if result_task is not None and not result_task.done():
                result_task.cancel()

    def _exit_code(self, exit_task: asyncio.Task[int]) -> int:
        try:
            returncode = exit_task.result()
            if returncode != 0:
                raise SubprocessExitError(returncode)
        except SubprocessExitError as e:
            log.error("Meteor process exited unexpectedly", code=e.returncode)
            return 1
        except Exception as e:
            log.error("Meteor process exited", error=str(e))
            return 1
        log.info("Meteor process exited cleanly")
        return 0

    def _start_relays(self, proc: asyncio.subprocess.Process) -> None:
        stdout_sink = self.stdout_sink or sys.stdout.buffer
        stderr_sink = self.stderr_sink or sys.stderr.buffer
        if proc.stdout is not None:
            self._relay_tasks.append(
                asyncio.create_task(
                    stream_output(proc.stdout, stdout_sink, on_ready=self._on_ready_marker),
                    name="mtest-relay-stdout",
                )
            )
        if proc.stderr is not None:
            self._relay_tasks.append(
                asyncio.create_task(stream_output(proc.stderr, stderr_sink), name="mtest-relay-stderr")
            )

    def _on_ready_marker(self) -> None:
        """Starts browser monitoring the first time the test server reports ready."""
        if self._browser_task is not None or self._cancel_event.is_set():
            return
        log.debug("Ready marker identified in meteor output; starting browser")
        self.session = self.session_factory(
            port=self.port,
            once=self.config.once,
            results=self.results,
            cancel_event=self._cancel_event,
            console=self.console,
        )
        self._browser_task = asyncio.create_task(self.session.run(), name="mtest-browser")
        self._browser_task.add_done_callback(self._on_browser_done)

    def _on_browser_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            log.error("Browser monitoring failed", error=str(exc), exc_info=exc)

    async def shutdown(self) -> None:
        """
        Releases the Meteor process and the browser.

        Runs at most once; concurrent and later calls wait for that single run.
        Safe to call whether or not run() got far enough to start anything.
        """
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self._shutdown())
        await asyncio.shield(self._shutdown_task)

    async def _shutdown(self) -> None:
        log.debug("Shutting down application resources")
        self._cancel_event.set()

        if self._browser_task is not None and not self._browser_task.done():
            self._browser_task.cancel()
            await asyncio.gather(self._browser_task, return_exceptions=True)

        proc, self.process = self.process, None
        if proc is not None:
            try:
                await supervisor.terminate(proc)
            except OSError as e:
                log.debug("Meteor termination error", error=str(e))

        session, self.session = self.session, None
        if session is not None:
            await session.close()

        pending = [t for t in (*self._relay_tasks, self._exit_task) if t is not None and not t.done()]
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=RELAY_DRAIN_TIMEOUT_SECONDS)
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)
        log.debug("Shutdown complete")


# 🔼⚙️
