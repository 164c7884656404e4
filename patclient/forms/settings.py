"""Configuration of the forms subsystem and GPS position lookup."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from patclient import gpsd
from patclient.gpsd import Position

_log = logging.getLogger(__name__)

GPS_MOCK_ADDR = "mock"
"""GPSd address that yields a fixed position without any daemon."""


def _read_line() -> str:
    try:
        return input()
    except EOFError:
        return ""


@dataclass
class GPSdConfig:
    """How to reach GPSd and what its position may be used for."""

    addr: str = ""
    allow_forms: bool = False
    use_server_time: bool = False


@dataclass
class FormsConfig:
    """Settings of the forms subsystem."""

    forms_path: str = ""
    sequence_path: str = ""
    sequence_format: str = "%03d"
    my_call: str = ""
    locator: str = ""
    app_version: str = ""
    line_reader: Callable[[], str] = _read_line
    user_agent: str = ""
    gpsd: GPSdConfig = field(default_factory=GPSdConfig)


def gps_position(config: GPSdConfig) -> Position:
    """Return the current position from GPSd for use in form templates.

    Raises RuntimeError if GPSd is not configured or not allowed for forms,
    and the connection's errors when the daemon cannot deliver a position.
    """
    if not config.addr:
        raise RuntimeError("GPSd: not configured.")
    if config.addr == GPS_MOCK_ADDR:
        return Position(lat=59.41378, lon=5.268)
    if not config.allow_forms:
        raise RuntimeError(
            "GPSd: allow_forms is disabled. GPS position will not be available in form templates."
        )
    try:
        conn = gpsd.dial(config.addr)
    except (OSError, ValueError, gpsd.UnsupportedProtocolVersionError) as exc:
        _log.warning("GPSd daemon: %s", exc)
        raise
    with conn:
        conn.watch(True)
        _log.info("Waiting for position from GPSd...")
        return conn.next_pos_timeout(3)