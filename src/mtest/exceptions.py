# src/mtest/exceptions.py

"""
Exception hierarchy for mtest.
"""


class MtestError(Exception):
    """Base class for all mtest errors."""

    def __init__(self, message: str, details: Exception | None = None):
        self.details = details
        super().__init__(message)
        if details and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ConfigurationError(MtestError):
    """Raised when the run configuration is missing or invalid."""

    pass


class PortExhaustedError(MtestError):
    """No bindable port was found in the probe range."""

    def __init__(self, port_min: int, port_max: int):
        self.port_min = port_min
        self.port_max = port_max
        super().__init__(f"no available port found in range {port_min}-{port_max - 1}")


class SubprocessStartError(MtestError):
    """The Meteor subprocess could not be spawned."""

    def __init__(self, command: list[str], details: Exception | None = None):
        self.command = command
        super().__init__(f"failed to start '{' '.join(command)}'", details)


class SubprocessExitError(MtestError):
    """The Meteor subprocess exited with a non-zero status."""

    def __init__(self, returncode: int):
        self.returncode = returncode
        super().__init__(f"meteor process exited with code {returncode}")


class BrowserLaunchError(MtestError):
    """The headless browser could not be started or connected to."""

    pass


class NavigationError(MtestError):
    """The test runner page could not be loaded after all attempts."""

    def __init__(self, url: str, attempts: int, details: Exception | None = None):
        self.url = url
        self.attempts = attempts
        cause = str(details) if details else "unknown navigation error"
        super().__init__(f"unable to load {url}: {cause}", details)


class EvaluationError(MtestError):
    """A script evaluation round trip against the test page failed."""

    def __init__(self, message: str, failures: int = 1, details: Exception | None = None):
        self.failures = failures
        super().__init__(message, details)


class CancellationRequested(MtestError):
    """Raised when a wait is interrupted by shutdown. Not a test failure."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"{stage} cancelled")


# 🔼⚙️
