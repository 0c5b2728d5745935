#
# config/__init__.py
#
"""
Configuration handling sub-package for mtest.

Exports the builder function and the run configuration model.
"""

from .loader import build_run_config
from .models import DEFAULT_VERBOSITY, MAX_VERBOSITY, RunConfig

__all__ = [
    "DEFAULT_VERBOSITY",
    "MAX_VERBOSITY",
    "RunConfig",
    "build_run_config",
]

# 🔼⚙️
