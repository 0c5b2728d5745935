# src/mtest/build_info.py

"""
Build metadata shown by `mtest --version`.
"""

import os
from importlib.metadata import PackageNotFoundError, version

from attrs import define, field

COMMIT_ENV_VAR = "MTEST_BUILD_COMMIT"


@define(frozen=True, slots=True)
class BuildInfo:
    """Version and commit identifiers of the running build."""

    version: str = field(default="")
    commit: str = field(default="")

    def display(self) -> str:
        return f"mtest {self.version or 'dev'} (commit {self.commit or 'local'})"


def current_build_info() -> BuildInfo:
    """Reads the installed distribution version and the commit stamped at build time."""
    try:
        pkg_version = version("mtest")
    except PackageNotFoundError:
        pkg_version = ""
    return BuildInfo(version=pkg_version, commit=os.environ.get(COMMIT_ENV_VAR, ""))


# 🔼⚙️
