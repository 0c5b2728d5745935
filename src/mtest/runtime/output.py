# src/mtest/runtime/output.py

"""
Relays subprocess output and detects when the Meteor test server is listening.
"""

import asyncio
from collections.abc import Callable
from typing import BinaryIO

import structlog

from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.output")

# "10015" is the port test-in-console's own control server announces.
READY_MARKERS: tuple[str, ...] = ("10015", "test-in-console listening")
# Bytes of a partial line kept so a marker split across chunks is still seen.
MARKER_OVERLAP = max(len(marker) for marker in READY_MARKERS) - 1


def contains_ready_marker(line: str) -> bool:
    """Returns True if the line contains any readiness marker."""
    for marker in READY_MARKERS:
        if marker in line:
            log.debug("Ready marker matched in meteor output", marker=marker)
            return True
    return False


async def _read_chunk(reader: asyncio.StreamReader) -> tuple[bytes, bool]:
    """
    Returns the next piece of output and whether it completes a line.

    A line longer than the reader's limit comes back in several pieces
    instead of failing the read.
    """
    try:
        return await reader.readuntil(b"\n"), True
    except asyncio.IncompleteReadError as e:
        return e.partial, True
    except asyncio.LimitOverrunError as e:
        return await reader.read(e.consumed), False


async def stream_output(
    reader: asyncio.StreamReader,
    sink: BinaryIO,
    on_ready: Callable[[], None] | None = None,
) -> None:
    """
    Copies lines from reader to sink until end of stream.

    When on_ready is given, it is called once for every line carrying a
    ready marker; the caller decides whether repeated calls matter.
    """
    tail = b""
    matched = False
    while True:
        try:
            chunk, line_done = await _read_chunk(reader)
        except (OSError, ValueError) as e:
            log.debug("Meteor output read error", error=str(e))
            return

        if not chunk:
            log.debug("Meteor output reached EOF")
            return

        try:
            sink.write(chunk)
            sink.flush()
        except (OSError, ValueError) as e:
            log.debug("Failed to write meteor output", error=str(e))

        if on_ready is not None and not matched:
            if contains_ready_marker((tail + chunk).decode("utf-8", errors="replace")):
                matched = True
                on_ready()

        if line_done:
            tail, matched = b"", False
        else:
            log.debug("Relaying oversized meteor output line in pieces", size=len(chunk))
            tail = chunk[-MARKER_OVERLAP:]


# 🔼⚙️
