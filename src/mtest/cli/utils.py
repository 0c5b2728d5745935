# src/mtest/cli/utils.py

from typing import Any

import click
import structlog

from mtest.config import DEFAULT_VERBOSITY, MAX_VERBOSITY
from mtest.telemetry.logger import setup_logging as core_setup_logging

log = structlog.get_logger("cli.utils")

VERBOSITY_NAMES: dict[str, int] = {
    "none": 0,
    "silent": 0,
    "off": 0,
    "error": 1,
    "err": 1,
    "warn": 2,
    "warning": 2,
    "info": 3,
    "debug": 4,
    "trace": 5,
}


class VerbosityType(click.ParamType):
    """Accepts a verbosity level as a number (0..5) or a level name."""

    name = "verbosity"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> int:
        if isinstance(value, int):
            level = value
        else:
            text = str(value).strip().lower()
            if text in VERBOSITY_NAMES:
                return VERBOSITY_NAMES[text]
            try:
                level = int(text)
            except ValueError:
                self.fail(
                    f"{value!r} is not a verbosity level. Use 0..{MAX_VERBOSITY} or one of: "
                    f"{', '.join(sorted(set(VERBOSITY_NAMES)))}.",
                    param,
                    ctx,
                )
        if not 0 <= level <= MAX_VERBOSITY:
            self.fail(f"{level} is not in the range 0..{MAX_VERBOSITY}.", param, ctx)
        return level


def resolve_verbosity(verbose_count: int, verbosity: int | None) -> int:
    """An explicit --verbosity wins; otherwise each -v raises the default by one level."""
    if verbosity is not None:
        return verbosity
    return min(DEFAULT_VERBOSITY + verbose_count, MAX_VERBOSITY)


def logging_options(f):
    """Decorator to add logging options to a command."""
    f = click.option(
        "-v",
        "--verbose",
        count=True,
        help="Increase verbosity: -v for debug, -vv for trace.",
    )(f)
    f = click.option(
        "--verbosity",
        type=VerbosityType(),
        default=None,
        envvar="MTEST_VERBOSITY",
        help="Verbosity 0..5 (0 none, 1 error, 2 warn, 3 info, 4 debug, 5 trace). Overrides -v.",
    )(f)
    f = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, writable=True, resolve_path=True),
        default=None,
        envvar="MTEST_LOG_FILE",
        help="Path to write logs to a file (JSON format).",
    )(f)
    f = click.option(
        "--json-logs",
        is_flag=True,
        default=None,
        envvar="MTEST_JSON_LOGS",
        help="Output console logs as JSON.",
    )(f)
    return f


def configure_logging(
    verbosity: int,
    log_file: str | None = None,
    json_logs: bool | None = None,
) -> None:
    """Setup logging from the resolved CLI values."""
    core_setup_logging(
        verbosity=verbosity,
        json_logs=bool(json_logs),
        log_file=log_file,
    )

    log.debug(
        "CLI logging initialized via utils",
        verbosity=verbosity,
        file=log_file or "console",
        json=bool(json_logs),
    )

# ⚙️🛠️
