# src/mtest/telemetry/logger/__init__.py

from .base import BASE_LOGGER_NAME, StructLogger, setup_logging
from .processors import level_for_verbosity

__all__ = ["BASE_LOGGER_NAME", "StructLogger", "level_for_verbosity", "setup_logging"]
