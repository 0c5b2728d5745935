#
# src/mtest/browser/__init__.py
#
"""
Headless browser session and TinyTest status polling.
"""

from .console import CONSOLE_SENTINEL, format_console_values
from .poller import TestPoller, coerce_failure_count
from .session import BrowserSession

__all__ = [
    "CONSOLE_SENTINEL",
    "BrowserSession",
    "TestPoller",
    "coerce_failure_count",
    "format_console_values",
]

# 🔼⚙️
