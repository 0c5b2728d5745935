#
# config/loader.py
#
"""
Builds a validated RunConfig from raw option values.
"""

from pathlib import Path
from typing import Any

import structlog

from mtest.exceptions import ConfigurationError

from .models import RunConfig

log = structlog.get_logger("config.loader")


def build_run_config(
    package_name: str | None,
    *,
    release: str | None = None,
    settings_path: str | Path | None = None,
    test_app_path: str | Path | None = None,
    once: bool = False,
    inspect: bool = False,
    inspect_brk: bool = False,
    port: int = 0,
    verbosity: int = 3,
) -> RunConfig:
    """
    Validates raw option values and returns an immutable RunConfig.

    Raises:
        ConfigurationError: If any value fails validation.
    """
    raw: dict[str, Any] = {
        "package_name": package_name or "",
        "release": release or None,
        "settings_path": settings_path,
        "test_app_path": test_app_path,
        "once": bool(once),
        "inspect": bool(inspect),
        "inspect_brk": bool(inspect_brk),
        "port": port,
        "verbosity": verbosity,
    }
    try:
        config = RunConfig(**raw)
    except (TypeError, ValueError) as e:
        log.debug("Run configuration rejected", error=str(e))
        raise ConfigurationError(str(e), e) from e

    log.debug(
        "Effective run configuration",
        package=config.package_name,
        release=config.release,
        settings_path=str(config.settings_path) if config.settings_path else None,
        test_app=str(config.test_app_path) if config.test_app_path else None,
        once=config.once,
        inspect=config.inspect,
        inspect_brk=config.inspect_brk,
        port=config.port,
    )
    return config


# 🔼⚙️
