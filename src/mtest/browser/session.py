# src/mtest/browser/session.py

"""
Owns the headless Chromium instance that loads and observes the TinyTest page.
"""

import asyncio
from contextlib import AbstractAsyncContextManager

import structlog
from playwright.async_api import Browser, ConsoleMessage, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from rich.console import Console

from mtest.browser.console import console_message, should_relay
from mtest.browser.poller import TestPoller, sleep_unless_cancelled
from mtest.exceptions import BrowserLaunchError, CancellationRequested, EvaluationError, NavigationError
from mtest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("browser.session")

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]
NAVIGATION_ATTEMPTS = 10
NAVIGATION_RETRY_DELAY_SECONDS = 0.5


class BrowserSession:
    """
    Launches the browser, navigates to the test runner and publishes results.

    Results go into a single-slot queue shared with the orchestrator; a
    result produced while another is still pending is dropped.
    """

    def __init__(
        self,
        port: int,
        once: bool,
        results: asyncio.Queue[int],
        cancel_event: asyncio.Event,
        console: Console | None = None,
    ):
        self.url = f"http://localhost:{port}/"
        self.once = once
        self.results = results
        self.cancel_event = cancel_event
        self.console = console or Console(soft_wrap=True)
        self._lock = asyncio.Lock()
        self._playwright: Playwright | None = None
        self.browser: Browser | None = None
        self.page: Page | None = None
        self._log = log.bind(url=self.url)

    @property
    def is_open(self) -> bool:
        return self.page is not None

    async def run(self) -> None:
        """
        Launches the browser and monitors test cycles until cancelled.

        Never raises for browser problems: a failed launch or navigation
        only ends this monitoring attempt.
        """
        self._log.debug("Starting headless browser for test monitoring")
        try:
            await self.open()
        except BrowserLaunchError as e:
            self._log.error(
                "Failed to launch browser; tests will run without pass/fail detection",
                error=str(e),
            )
            return

        try:
            await self.load_page()
        except CancellationRequested:
            return
        except NavigationError as e:
            self._log.error("Failed to load test runner page", error=str(e), attempts=e.attempts)
            return
        self._log.debug("Test runner page ready")

        self._status("Running tests...")
        await self.monitor()

    async def open(self) -> None:
        """Starts Playwright, launches Chromium and opens the test page target."""
        manager = async_playwright()
        try:
            playwright = await manager.start()
        except asyncio.CancelledError:
            self._log.debug("Browser startup cancelled; stopping Playwright driver")
            await self._stop_driver(manager)
            raise
        except Exception as e:
            raise BrowserLaunchError("failed to start the Playwright driver", e) from e
        async with self._lock:
            self._playwright = playwright

        try:
            browser = await playwright.chromium.launch(headless=True, args=CHROMIUM_ARGS)
        except PlaywrightError as e:
            raise BrowserLaunchError("failed to launch browser", e) from e
        async with self._lock:
            self.browser = browser
        self._log.debug("Connected to headless browser")

        try:
            page = await browser.new_page()
        except PlaywrightError as e:
            raise BrowserLaunchError("failed to open page", e) from e
        page.on("console", self._relay_console)
        async with self._lock:
            self.page = page
        self._log.debug("Created browser page for TinyTest runner")

    async def _stop_driver(self, manager: AbstractAsyncContextManager[Playwright]) -> None:
        # start() is the context manager's __aenter__; __aexit__ tears down a partial start too.
        try:
            await manager.__aexit__(None, None, None)
        except Exception as e:
            self._log.debug("Playwright driver stop failed", error=str(e))

    async def _relay_console(self, msg: ConsoleMessage) -> None:
        message = await console_message(msg)
        if not should_relay(message):
            return
        self.console.print(message, markup=False, highlight=False, emoji=False, soft_wrap=True)

    async def load_page(self) -> None:
        """
        Navigates to the test runner, retrying while the Meteor app boots.

        Raises:
            CancellationRequested: If cancelled before an attempt.
            NavigationError: If every attempt fails.
        """
        page = self.page
        if page is None:
            raise NavigationError(self.url, 0)

        last_error: Exception | None = None
        for attempt in range(1, NAVIGATION_ATTEMPTS + 1):
            if self.cancel_event.is_set():
                self._log.debug("Navigation aborted because of cancellation")
                raise CancellationRequested("navigation")
            self._log.debug("Navigating to test runner page", attempt=attempt)
            try:
                await page.goto(self.url, wait_until="load")
                await page.wait_for_load_state("load")
                self._log.debug("Test runner page load complete", attempt=attempt)
                return
            except PlaywrightError as e:
                last_error = e
                self._log.debug("Navigation attempt failed", attempt=attempt, error=str(e))
            if attempt < NAVIGATION_ATTEMPTS:
                await sleep_unless_cancelled(self.cancel_event, NAVIGATION_RETRY_DELAY_SECONDS, "navigation")

        raise NavigationError(self.url, NAVIGATION_ATTEMPTS, last_error)

    async def monitor(self) -> None:
        """Polls for test results; in watch mode keeps going for every new cycle."""
        if self.page is None:
            return
        poller = TestPoller(self.page, self.cancel_event)
        while True:
            try:
                failures = await poller.wait_for_completion()
            except CancellationRequested:
                return
            except EvaluationError as e:
                self._log.error("Failed while waiting for tests", error=str(e))
                failures = e.failures

            self.publish(failures)

            if self.once:
                return
            if failures != 0:
                self._log.warning("Tests finished with failures", failures=failures)

            try:
                await poller.wait_for_restart()
            except CancellationRequested:
                return

    def publish(self, failures: int) -> bool:
        """Offers a result to the orchestrator without blocking. Returns False if dropped."""
        try:
            self.results.put_nowait(failures)
        except asyncio.QueueFull:
            self._log.debug("Result channel already populated; skipping dispatch", status=failures)
            return False
        self._log.debug("Dispatched test result to channel", status=failures)
        return True

    def _status(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)

    async def close(self) -> None:
        """Closes page, browser and driver. Safe to call repeatedly."""
        async with self._lock:
            page, browser, playwright = self.page, self.browser, self._playwright
            self.page = None
            self.browser = None
            self._playwright = None

        if page is not None:
            self._log.debug("Closing browser page")
            try:
                await page.close()
            except PlaywrightError as e:
                self._log.debug("Browser page close failed", error=str(e))
        if browser is not None:
            self._log.debug("Closing browser instance")
            try:
                await browser.close()
            except PlaywrightError as e:
                self._log.debug("Browser close failed", error=str(e))
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                self._log.debug("Playwright driver stop failed", error=str(e))


# 🔼⚙️
