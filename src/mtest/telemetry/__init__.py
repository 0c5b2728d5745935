# src/mtest/telemetry/__init__.py

"""
Logging setup and logger typing for mtest.
"""

from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]
