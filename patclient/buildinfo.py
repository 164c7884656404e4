"""Application name, version and build identification strings."""

import platform
import sys

APP_NAME = "Pat"
"""Friendly name of the application."""

VERSION = "0.17.0"
"""Semantic version of the application."""

GIT_REV = "unknown origin"
"""Revision the application was built from."""

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
}


def _os_name() -> str:
    if sys.platform == "win32":
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def _arch() -> str:
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine or "unknown")


def _runtime_version() -> str:
    return f"python{platform.python_version()}"


def version_string_short() -> str:
    """Return the version and git revision."""
    return f"v{VERSION} ({GIT_REV})"


def version_string() -> str:
    """Return the version with git revision, OS, architecture and runtime."""
    return f"{version_string_short()} {_os_name()}/{_arch()} - {_runtime_version()}"


def user_agent() -> str:
    """Return an HTTP user agent string identifying this application."""
    return (
        f"{APP_NAME}/{VERSION} ({GIT_REV}) {_runtime_version()} "
        f"({_os_name()}; {_arch()})"
    )