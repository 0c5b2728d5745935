#
# config/models.py
#
"""
Attrs-based data models for the mtest run configuration.
"""

from pathlib import Path
from typing import Any

from attrs import define, field

DEFAULT_VERBOSITY = 3
MAX_VERBOSITY = 5


# --- Validators ---
def _validate_package_name(inst: Any, attr: Any, value: str) -> None:
    """Validator ensures a Meteor package name was supplied."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("missing package name; supply --package/-p")


def _validate_port(inst: Any, attr: Any, value: int) -> None:
    """Validator ensures port is 0 (auto) or a valid TCP port."""
    if not isinstance(value, int) or not 0 <= value <= 65535:
        raise ValueError(f"Field '{attr.name}' must be between 0 and 65535, got {value}")


def _validate_verbosity(inst: Any, attr: Any, value: int) -> None:
    if not isinstance(value, int) or not 0 <= value <= MAX_VERBOSITY:
        raise ValueError(f"Field '{attr.name}' must be between 0 and {MAX_VERBOSITY}, got {value}")


def _optional_path(value: str | Path | None) -> Path | None:
    if value is None or value == "":
        return None
    return Path(value)


@define(frozen=True, slots=True)
class RunConfig:
    """Options controlling a single mtest run."""

    package_name: str = field(validator=_validate_package_name)
    release: str | None = field(default=None)
    settings_path: Path | None = field(default=None, converter=_optional_path)
    test_app_path: Path | None = field(default=None, converter=_optional_path)
    once: bool = field(default=False)
    inspect: bool = field(default=False)
    inspect_brk: bool = field(default=False)
    port: int = field(default=0, validator=_validate_port)
    verbosity: int = field(default=DEFAULT_VERBOSITY, validator=_validate_verbosity)


# 🔼⚙️
