# src/mtest/telemetry/logger/processors.py

"""
Custom structlog processors for mtest.
"""

import logging
from typing import Any

from structlog.typing import EventDict, WrappedLogger

LEVEL_EMOJIS: dict[str, str] = {
    "debug": "🐛",
    "info": "ℹ️",
    "warning": "⚠️",
    "error": "❌",
    "critical": "💥",
}

# Keys the stdlib bridge adds that carry no meaning in rendered output.
_EXTRA_KEYS = ("_record", "_from_structlog")


def add_emoji_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Prefixes the event with an emoji matching its level."""
    level = event_dict.get("level") or method_name
    emoji = LEVEL_EMOJIS.get(str(level).lower())
    event = event_dict.get("event")
    if emoji and isinstance(event, str) and not event.startswith(emoji):
        event_dict["event"] = f"{emoji} {event}"
    return event_dict


def remove_extra_keys_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Drops None-valued fields so optional context does not clutter console lines."""
    for key in [k for k, v in event_dict.items() if v is None and k not in _EXTRA_KEYS]:
        del event_dict[key]
    return event_dict


def level_for_verbosity(verbosity: int) -> int:
    """
    Maps CLI verbosity (0..5) to a stdlib logging level.

    0 silences logging entirely; 5 is DEBUG with call-site details added.
    """
    if verbosity <= 0:
        return logging.CRITICAL + 10
    mapping: dict[int, Any] = {
        1: logging.ERROR,
        2: logging.WARNING,
        3: logging.INFO,
    }
    return mapping.get(verbosity, logging.DEBUG)


# 🔼⚙️
