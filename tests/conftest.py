import asyncio
import sys
from collections.abc import Callable
from typing import Any

import pytest

from mtest.config import RunConfig


@pytest.fixture
def run_config() -> Callable[..., RunConfig]:
    """Factory for RunConfig instances with test-friendly defaults."""

    def _make(**overrides: Any) -> RunConfig:
        values: dict[str, Any] = {"package_name": "mtest:dummy", "port": 12345}
        values.update(overrides)
        return RunConfig(**values)

    return _make


@pytest.fixture
def python_child() -> Callable[[str], list[str]]:
    """Builds a command line that runs a Python snippet unbuffered in a child process."""

    def _command(source: str) -> list[str]:
        return [sys.executable, "-u", "-c", source]

    return _command


class FakeBrowserSession:
    """
    Stands in for BrowserSession: publishes a scripted list of results.

    Each result is published only after the previous one has been consumed,
    the way successive watch-mode cycles arrive.
    """

    instances: list["FakeBrowserSession"] = []

    def __init__(
        self,
        script: list[int],
        *,
        port: int,
        once: bool,
        results: asyncio.Queue[int],
        cancel_event: asyncio.Event,
        console: Any = None,
    ):
        self.script = list(script)
        self.port = port
        self.once = once
        self.results = results
        self.cancel_event = cancel_event
        self.published: list[int] = []
        self.all_published = asyncio.Event()
        self.close_calls = 0
        FakeBrowserSession.instances.append(self)

    async def run(self) -> None:
        for failures in self.script:
            while not self.results.empty():
                await asyncio.sleep(0.01)
            self.results.put_nowait(failures)
            self.published.append(failures)
        self.all_published.set()
        await self.cancel_event.wait()

    async def close(self) -> None:
        self.close_calls += 1


@pytest.fixture
def fake_session_factory() -> Callable[[list[int]], Callable[..., FakeBrowserSession]]:
    FakeBrowserSession.instances = []

    def _factory(script: list[int]) -> Callable[..., FakeBrowserSession]:
        def _build(**kwargs: Any) -> FakeBrowserSession:
            return FakeBrowserSession(script, **kwargs)

        return _build

    return _factory
