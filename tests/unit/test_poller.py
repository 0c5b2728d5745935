#
# tests/unit/test_poller.py
#
"""
Unit tests for TinyTest status polling.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import Error as PlaywrightError

from mtest.browser.poller import (
    CYCLE_RESTARTED_SCRIPT,
    DONE_SCRIPT,
    FAILURES_SCRIPT,
    TestPoller,
    coerce_failure_count,
    sleep_unless_cancelled,
)
from mtest.exceptions import CancellationRequested, EvaluationError

FAST = 0.001


def _page(responses: dict[str, list]) -> AsyncMock:
    """Builds a page whose evaluate() answers each script from its own list; the last item repeats."""
    remaining = {script: list(values) for script, values in responses.items()}

    async def _evaluate(script: str):
        values = remaining[script]
        value = values.pop(0) if len(values) > 1 else values[0]
        if isinstance(value, Exception):
            raise value
        return value

    page = AsyncMock()
    page.evaluate = AsyncMock(side_effect=_evaluate)
    return page


class _ReloadingPage:
    """A page whose window is replaced by a Meteor rebuild right after the failure count is read."""

    def __init__(self, failures: int):
        self.failures = failures
        self.window: dict[str, bool] = {}
        self.scripts: list[str] = []

    async def evaluate(self, script: str):
        self.scripts.append(script)
        if script == CYCLE_RESTARTED_SCRIPT:
            return not self.window.get("reported", False)
        if script == DONE_SCRIPT:
            return True
        if "window.__mtestCycleReported = true" in script:
            self.window["reported"] = True
        if script == FAILURES_SCRIPT:
            self.window = {}
            return self.failures
        return True


class TestCoerceFailureCount:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (None, 0),
            (0, 0),
            (3, 3),
            (2.9, 2),
            (True, 1),
            (False, 0),
            ("4", 4),
            (" 5 ", 5),
            ("", 0),
            ("   ", 0),
            ("2.5", 2),
            ("abc", 0),
            (float("nan"), 0),
            (float("inf"), 0),
            ([1], 0),
        ],
    )
    def test_coercion(self, raw, expected: int) -> None:
        assert coerce_failure_count(raw) == expected


@pytest.mark.asyncio
class TestSleepUnlessCancelled:
    async def test_returns_after_timeout(self) -> None:
        await sleep_unless_cancelled(asyncio.Event(), FAST, "test")

    async def test_raises_when_cancelled(self) -> None:
        event = asyncio.Event()
        event.set()

        with pytest.raises(CancellationRequested) as exc_info:
            await sleep_unless_cancelled(event, 10, "navigation retry")

        assert exc_info.value.stage == "navigation retry"


@pytest.mark.asyncio
class TestPollerCompletion:
    async def test_returns_failures_once_done(self) -> None:
        page = _page({DONE_SCRIPT: [False, False, True], FAILURES_SCRIPT: [2]})
        poller = TestPoller(page, asyncio.Event(), interval=FAST)

        assert await poller.wait_for_completion() == 2

        scripts = [call.args[0] for call in page.evaluate.await_args_list]
        assert scripts.count(DONE_SCRIPT) == 3
        assert scripts[-1] == FAILURES_SCRIPT

    async def test_evaluation_errors_count_as_not_done(self) -> None:
        page = _page(
            {
                DONE_SCRIPT: [PlaywrightError("Execution context was destroyed"), True],
                FAILURES_SCRIPT: ["0"],
            }
        )
        poller = TestPoller(page, asyncio.Event(), interval=FAST)

        assert await poller.wait_for_completion() == 0

    async def test_failure_read_error_raises(self) -> None:
        page = _page({DONE_SCRIPT: [True], FAILURES_SCRIPT: [PlaywrightError("Target closed")]})
        poller = TestPoller(page, asyncio.Event(), interval=FAST)

        with pytest.raises(EvaluationError) as exc_info:
            await poller.wait_for_completion()

        assert exc_info.value.failures == 1

    async def test_reload_after_result_starts_next_cycle(self) -> None:
        page = _ReloadingPage(failures=3)
        poller = TestPoller(page, asyncio.Event(), interval=FAST)

        assert await poller.wait_for_completion() == 3
        await asyncio.wait_for(poller.wait_for_restart(), timeout=1)

        assert page.scripts.count(FAILURES_SCRIPT) == 1
        assert page.scripts[-1] == CYCLE_RESTARTED_SCRIPT

    async def test_cancellation_stops_polling(self) -> None:
        page = _page({DONE_SCRIPT: [False]})
        cancel_event = asyncio.Event()
        poller = TestPoller(page, cancel_event, interval=FAST)

        task = asyncio.create_task(poller.wait_for_completion())
        await asyncio.sleep(0.05)
        cancel_event.set()

        with pytest.raises(CancellationRequested):
            await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
class TestPollerRestart:
    async def test_waits_until_marker_is_gone(self) -> None:
        page = _page({CYCLE_RESTARTED_SCRIPT: [False, PlaywrightError("navigating"), False, True]})
        poller = TestPoller(page, asyncio.Event(), interval=FAST)

        await asyncio.wait_for(poller.wait_for_restart(), timeout=1)

        assert page.evaluate.await_count == 4

    async def test_cancellation_stops_restart_wait(self) -> None:
        cancel_event = asyncio.Event()
        cancel_event.set()
        poller = TestPoller(_page({CYCLE_RESTARTED_SCRIPT: [False]}), cancel_event, interval=FAST)

        with pytest.raises(CancellationRequested):
            await poller.wait_for_restart()
