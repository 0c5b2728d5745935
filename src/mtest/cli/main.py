# src/mtest/cli/main.py

"""
Main CLI entry point for mtest using Click.
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Any

import click
import structlog

from mtest.build_info import BuildInfo, current_build_info
from mtest.cli.utils import configure_logging, logging_options, resolve_verbosity
from mtest.config import build_run_config
from mtest.exceptions import ConfigurationError
from mtest.runtime.orchestrator import TestRunOrchestrator
from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.main")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _handle_signal(sig: int, shutdown_event: asyncio.Event) -> None:
    signame = signal.Signals(sig).name
    base_log = structlog.get_logger("cli.signal")
    base_log.debug("Received shutdown signal", signal=signame, signal_num=sig)
    if not shutdown_event.is_set():
        shutdown_event.set()
    else:
        base_log.warning("Shutdown already requested, signal ignored.")


def _install_signal_handlers(
    shutdown_event: asyncio.Event,
) -> tuple[list[signal.Signals], dict[signal.Signals, Any]]:
    """
    Routes SIGINT/SIGTERM to the shutdown event.

    Returns the signals registered on the loop and, for signals that fell
    back to signal.signal, the handlers they replaced.
    """
    loop = asyncio.get_running_loop()
    installed = []
    replaced: dict[signal.Signals, Any] = {}
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, _handle_signal, sig, shutdown_event)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler.
            replaced[sig] = signal.signal(
                sig, lambda s, _frame: loop.call_soon_threadsafe(_handle_signal, s, shutdown_event)
            )
            continue
        installed.append(sig)
    log.debug("Registered signal handlers", signals=[s.name for s in SHUTDOWN_SIGNALS])
    return installed, replaced


def _restore_signal_handlers(installed: list[signal.Signals], replaced: dict[signal.Signals, Any]) -> None:
    loop = asyncio.get_running_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)
    for sig, previous in replaced.items():
        # None means the previous handler was not installed from Python.
        signal.signal(sig, previous if previous is not None else signal.SIG_DFL)


async def _run_until_done(orchestrator: TestRunOrchestrator) -> int:
    shutdown_event = asyncio.Event()
    installed, replaced = _install_signal_handlers(shutdown_event)
    try:
        exit_code = await orchestrator.run(shutdown_event)
        log.debug("Application run complete", exit_code=exit_code)
        return exit_code
    finally:
        await orchestrator.shutdown()
        _restore_signal_handlers(installed, replaced)


def _run_orchestrator(orchestrator: TestRunOrchestrator) -> int:
    """Runs the orchestrator to completion in a fresh event loop and returns its exit code."""
    try:
        return asyncio.run(_run_until_done(orchestrator))
    except KeyboardInterrupt:
        log.warning("Shutdown initiated by KeyboardInterrupt (CTRL-C).")
        return 130
    finally:
        logging.shutdown()


def _print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    info = ctx.obj if isinstance(ctx.obj, BuildInfo) else current_build_info()
    click.echo(info.display())
    ctx.exit()


@click.command(name="mtest", context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-p", "--package", "package_name", required=True, envvar="MTEST_PACKAGE", help="Meteor package name to test (required).")
@click.option("-r", "--release", default=None, envvar="MTEST_RELEASE", help="Meteor release to use.")
@click.option(
    "-s",
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="MTEST_SETTINGS",
    help="Settings JSON file path.",
)
@click.option(
    "-t",
    "--test-app-path",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    envvar="MTEST_TEST_APP_PATH",
    help="Test app path.",
)
@click.option("-o", "--once", is_flag=True, envvar="MTEST_ONCE", help="Exit after the first test run finishes.")
@click.option("-i", "--inspect", is_flag=True, help="Pass --inspect to meteor.")
@click.option("-b", "--inspect-brk", is_flag=True, help="Pass --inspect-brk to meteor.")
@click.option(
    "--port",
    type=click.IntRange(0, 65535),
    default=0,
    envvar="MTEST_PORT",
    help="Port to use for the test app (defaults to a random free port between 10000-11999).",
)
@click.option(
    "-V",
    "--version",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_print_version,
    help="Print version and exit.",
)
@logging_options
@click.pass_context
def cli(
    ctx: click.Context,
    package_name: str,
    release: str | None,
    settings_path: Path | None,
    test_app_path: Path | None,
    once: bool,
    inspect: bool,
    inspect_brk: bool,
    port: int,
    verbose: int,
    verbosity: int | None,
    log_file: str | None,
    json_logs: bool | None,
):
    """
    mtest: run Meteor package tests in a headless browser.

    Starts `meteor test-packages` with the test-in-console driver, loads the
    test page in headless Chromium and exits with the number of failed tests
    (with --once) or keeps watching for new runs.
    """
    effective_verbosity = resolve_verbosity(verbose, verbosity)
    configure_logging(effective_verbosity, log_file=log_file, json_logs=json_logs)

    try:
        config = build_run_config(
            package_name,
            release=release,
            settings_path=settings_path,
            test_app_path=test_app_path,
            once=once,
            inspect=inspect,
            inspect_brk=inspect_brk,
            port=port,
            verbosity=effective_verbosity,
        )
    except ConfigurationError as e:
        raise click.UsageError(str(e), ctx=ctx) from e

    orchestrator = TestRunOrchestrator(config=config)
    exit_code = _run_orchestrator(orchestrator)
    log.debug("'mtest' finished.", exit_code=exit_code)
    ctx.exit(exit_code)


def main() -> None:
    """Console-script entry point; stamps the build metadata into the CLI context."""
    cli(obj=current_build_info())


if __name__ == "__main__":
    main()

# 🖥️⚙️
