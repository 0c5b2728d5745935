# src/mtest/browser/console.py

"""
Formats browser console messages for relay to stdout.
"""

import json
from collections.abc import Iterable
from typing import Any

import structlog
from playwright.async_api import ConsoleMessage
from playwright.async_api import Error as PlaywrightError

from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("browser.console")

# Printed by test-in-console when a run ends; the orchestrator reports completion itself.
CONSOLE_SENTINEL = "##_meteor_magic##state: done"


def format_console_values(values: Iterable[Any]) -> str:
    """Joins decoded console arguments: strings verbatim, everything else as compact JSON."""
    parts: list[str] = []
    for value in values:
        if isinstance(value, str):
            parts.append(value)
            continue
        try:
            parts.append(json.dumps(value, separators=(",", ":"), ensure_ascii=False))
        except (TypeError, ValueError):
            parts.append(str(value))
    return " ".join(parts).strip()


def should_relay(message: str) -> bool:
    return bool(message) and message != CONSOLE_SENTINEL


async def console_message(msg: ConsoleMessage) -> str:
    """Decodes every argument of a console call and formats the result."""
    values: list[Any] = []
    for arg in msg.args:
        try:
            values.append(await arg.json_value())
        except PlaywrightError as e:
            log.debug("Console value decode failed", error=str(e))
    message = format_console_values(values)
    if message:
        log.debug("Formatted console message", message=message)
    return message


# 🔼⚙️
