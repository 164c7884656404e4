"""Debug logging switched on by the PAT_DEBUG environment variable."""

import logging
import os

ENV_VAR = "PAT_DEBUG"
PREFIX = "[DEBUG] "

_log = logging.getLogger("patclient")

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}


def enabled() -> bool:
    """Return True if debug output is switched on."""
    return os.environ.get(ENV_VAR, "") in _TRUE


def printf(message: str, *args) -> None:
    """Log a %-style formatted debug message when debugging is enabled."""
    if not enabled():
        return
    _log.info(PREFIX + message, *args)