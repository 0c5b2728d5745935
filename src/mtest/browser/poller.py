# src/mtest/browser/poller.py

"""
Polls the TinyTest status exposed by the test-in-console driver package.
"""

import asyncio
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from mtest.exceptions import CancellationRequested, EvaluationError
from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("browser.poller")

POLL_INTERVAL_SECONDS = 0.5

DONE_SCRIPT = """() => {
    if (typeof Package !== 'undefined' && Package['test-in-console']) {
        return Package['test-in-console'].TEST_STATUS.DONE === true;
    }
    return false;
}"""

# Marks the reported cycle in the same window the failure count is read from;
# a reload for the next watch cycle discards the flag along with that window.
FAILURES_SCRIPT = """() => {
    window.__mtestCycleReported = true;
    if (typeof Package !== 'undefined' && Package['test-in-console']) {
        return Package['test-in-console'].TEST_STATUS.FAILURES || 0;
    }
    return 0;
}"""

CYCLE_RESTARTED_SCRIPT = "() => window.__mtestCycleReported !== true"


async def sleep_unless_cancelled(cancel_event: asyncio.Event, seconds: float, stage: str) -> None:
    """Sleeps for `seconds`, raising CancellationRequested as soon as cancel_event is set."""
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return
    log.debug("Wait aborted because of cancellation", stage=stage)
    raise CancellationRequested(stage)


def coerce_failure_count(raw: Any) -> int:
    """
    Converts the evaluated FAILURES value to an int.

    Numbers are truncated, numeric strings parsed, blank strings and None
    count as zero, and any other string is read as a float if possible.
    """
    if raw is None:
        return 0
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        try:
            return int(raw)
        except (ValueError, OverflowError):
            return 0
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            return 0
    return 0


class TestPoller:
    """Waits for the in-page test run to finish and reads its failure count."""

    __test__ = False

    def __init__(self, page: Page, cancel_event: asyncio.Event, interval: float = POLL_INTERVAL_SECONDS):
        self._page = page
        self._cancel_event = cancel_event
        self._interval = interval

    async def _evaluate(self, script: str) -> tuple[bool, Any]:
        try:
            return True, await self._page.evaluate(script)
        except PlaywrightError as e:
            log.debug("Status evaluation failed", error=str(e))
            return False, None

    async def tests_done(self) -> bool:
        ok, result = await self._evaluate(DONE_SCRIPT)
        done = ok and bool(result)
        log.debug("Test completion flag evaluated", done=done)
        return done

    async def fetch_failures(self) -> int:
        try:
            raw = await self._page.evaluate(FAILURES_SCRIPT)
        except PlaywrightError as e:
            raise EvaluationError("failed to read TinyTest failure count", failures=1, details=e) from e
        failures = coerce_failure_count(raw)
        log.debug("Retrieved TinyTest failure count", failures=failures, raw=raw)
        return failures

    async def wait_for_completion(self) -> int:
        """
        Polls until the suite reports DONE and returns the failure count.

        Raises:
            CancellationRequested: If the cancel event is set while waiting.
            EvaluationError: If the failure count cannot be read.
        """
        while True:
            await sleep_unless_cancelled(self._cancel_event, self._interval, "test polling")
            if await self.tests_done():
                log.debug("Detected that tests completed; fetching failure count")
                return await self.fetch_failures()

    async def wait_for_restart(self) -> None:
        """Polls until the page has been reloaded for a new test cycle."""
        while True:
            await sleep_unless_cancelled(self._cancel_event, self._interval, "cycle restart wait")
            ok, restarted = await self._evaluate(CYCLE_RESTARTED_SCRIPT)
            if ok and restarted is True:
                log.debug("Test page reloaded; new cycle started")
                return


# 🔼⚙️
