#
# src/mtest/runtime/process/__init__.py
#
"""
Platform-specific process-group configuration and termination.

The implementation is chosen once, when this package is imported.
"""

import sys

if sys.platform == "win32":
    from ._windows import configure, terminate
else:
    from ._posix import configure, terminate

__all__ = ["configure", "terminate"]

# 🔼⚙️
