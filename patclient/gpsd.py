"""Client for the GPSd daemon's JSON protocol."""

import contextlib
import enum
import json
import re
import socket
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union


class NMEAMode(enum.IntEnum):
    """NMEA fix mode reported in TPV objects."""

    UNKNOWN = 0
    NO_FIX = 1
    MODE_2D = 2
    MODE_3D = 3


class UnsupportedProtocolVersionError(Exception):
    """The daemon speaks a protocol version older than 3."""

    def __init__(self, message: str = "unsupported protocol version") -> None:
        super().__init__(message)


class GPSdTimeoutError(TimeoutError):
    """No position was reported before the deadline."""

    def __init__(self, message: str = "timeout") -> None:
        super().__init__(message)


class WatchModeEnabledError(Exception):
    """The operation cannot be done while the connection is in watch mode."""

    def __init__(self, message: str = "operation not available while in watch mode") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Position:
    """Geographic position. Positive latitude is north, positive longitude east."""

    lat: float = 0.0
    lon: float = 0.0
    alt: float = 0.0
    track: float = 0.0
    speed: float = 0.0
    time: Optional[datetime] = None


@dataclass
class Satellite:
    """A satellite in a sky view."""

    prn: int = 0
    azimuth: Optional[float] = None
    elevation: Optional[float] = None
    signal_strength: Optional[float] = None
    used: bool = False


@dataclass
class Sky:
    """A sky view of the satellite positions."""

    device: str = ""
    time: Optional[datetime] = None
    xdop: Optional[float] = None
    ydop: Optional[float] = None
    vdop: Optional[float] = None
    tdop: Optional[float] = None
    hdop: Optional[float] = None
    pdop: Optional[float] = None
    gdop: Optional[float] = None
    satellites: list[Satellite] = field(default_factory=list)


@dataclass
class TPV:
    """A time-position-velocity report."""

    device: str = ""
    mode: Union[NMEAMode, int] = NMEAMode.UNKNOWN
    time: Optional[datetime] = None
    ept: Optional[float] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    alt: Optional[float] = None
    epx: Optional[float] = None
    epy: Optional[float] = None
    epv: Optional[float] = None
    track: Optional[float] = None
    speed: Optional[float] = None
    climb: Optional[float] = None
    epd: Optional[float] = None
    eps: Optional[float] = None
    epc: Optional[float] = None

    def position(self) -> Position:
        """Return the reported position; absent values become 0."""
        return Position(
            lat=self.lat or 0.0,
            lon=self.lon or 0.0,
            alt=self.alt or 0.0,
            track=self.track or 0.0,
            speed=self.speed or 0.0,
            time=self.time,
        )

    def has_fix(self) -> bool:
        """Return True if the report carries a 2D or 3D fix."""
        return self.mode > NMEAMode.NO_FIX


@dataclass
class Version:
    """Daemon version information."""

    release: str = ""
    rev: str = ""
    proto_major: int = 0
    proto_minor: int = 0


@dataclass
class Device:
    """A sensor known to the daemon."""

    path: str = ""
    flags: Optional[int] = None
    driver: str = ""
    subtype: str = ""
    bps: Optional[int] = None
    parity: str = ""
    stop_bits: int = 0


@dataclass
class Watch:
    """Watch mode settings, as sent and echoed by the daemon."""

    class_name: str = "WATCH"
    enable: bool = False
    json: Optional[bool] = None
    nmea: Optional[bool] = None
    raw: Optional[int] = None
    scaled: Optional[bool] = None
    split24: Optional[bool] = None
    pps: Optional[bool] = None
    device: str = ""
    devices: list[Device] = field(default_factory=list)


# --- JSON field helpers (field names match case-insensitively) ---

def _lower(obj: Any) -> dict:
    if not isinstance(obj, dict):
        raise ValueError("expected a JSON object")
    return {str(k).lower(): v for k, v in obj.items()}


def _str(d: dict, key: str) -> str:
    value = d.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected string")
    return value


def _int(d: dict, key: str) -> int:
    value = _opt_int(d, key)
    return 0 if value is None else value


def _opt_int(d: dict, key: str) -> Optional[int]:
    value = d.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r}: expected integer")
    return value


def _num(d: dict, key: str) -> Optional[float]:
    value = d.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r}: expected number")
    return float(value)


def _bool(d: dict, key: str) -> bool:
    value = _opt_bool(d, key)
    return bool(value)


def _opt_bool(d: dict, key: str) -> Optional[bool]:
    value = d.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValueError(f"field {key!r}: expected boolean")
    return value


_TIME_RE = re.compile(r"^(.*T\d{2}:\d{2}:\d{2})(\.\d+)?(.*)$", re.IGNORECASE)


def _time(d: dict, key: str) -> Optional[datetime]:
    value = d.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected RFC 3339 time")
    match = _TIME_RE.match(value)
    if not match:
        raise ValueError(f"field {key!r}: invalid time {value!r}")
    head, frac, zone = match.groups()
    frac = (frac or ".0")[1:]
    frac = (frac + "000000")[:6]
    if zone in ("Z", "z"):
        zone = "+00:00"
    return datetime.fromisoformat(f"{head}.{frac}{zone}")


def _mode(d: dict) -> Union[NMEAMode, int]:
    value = _int(d, "mode")
    try:
        return NMEAMode(value)
    except ValueError:
        return value


def _device(obj: Any) -> Device:
    d = _lower(obj)
    return Device(
        path=_str(d, "path"),
        flags=_opt_int(d, "flags"),
        driver=_str(d, "driver"),
        subtype=_str(d, "subtype"),
        bps=_opt_int(d, "bps"),
        parity=_str(d, "parity"),
        stop_bits=_int(d, "stopbits"),
    )


def _devices(d: dict) -> list[Device]:
    value = d.get("devices")
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("field 'devices': expected array")
    return [_device(item) for item in value]


def _version(d: dict) -> Version:
    return Version(
        release=_str(d, "release"),
        rev=_str(d, "rev"),
        proto_major=_int(d, "proto_major"),
        proto_minor=_int(d, "proto_minor"),
    )


def _satellite(obj: Any) -> Satellite:
    d = _lower(obj)
    return Satellite(
        prn=_int(d, "prn"),
        azimuth=_num(d, "az"),
        elevation=_num(d, "el"),
        signal_strength=_num(d, "ss"),
        used=_bool(d, "used"),
    )


def _sky(d: dict) -> Sky:
    satellites = d.get("satellites") or []
    if not isinstance(satellites, list):
        raise ValueError("field 'satellites': expected array")
    return Sky(
        device=_str(d, "device"),
        time=_time(d, "time"),
        xdop=_num(d, "xdop"),
        ydop=_num(d, "ydop"),
        vdop=_num(d, "vdop"),
        tdop=_num(d, "tdop"),
        hdop=_num(d, "hdop"),
        pdop=_num(d, "pdop"),
        gdop=_num(d, "gdop"),
        satellites=[_satellite(s) for s in satellites],
    )


def _tpv(d: dict) -> TPV:
    return TPV(
        device=_str(d, "device"),
        mode=_mode(d),
        time=_time(d, "time"),
        **{name: _num(d, name) for name in (
            "ept", "lat", "lon", "alt", "epx", "epy", "epv",
            "track", "speed", "climb", "epd", "eps", "epc",
        )},
    )


def _watch(d: dict) -> Watch:
    return Watch(
        class_name=_str(d, "class"),
        enable=_bool(d, "enable"),
        json=_opt_bool(d, "json"),
        nmea=_opt_bool(d, "nmea"),
        raw=_opt_int(d, "raw"),
        scaled=_opt_bool(d, "scaled"),
        split24=_opt_bool(d, "split24"),
        pps=_opt_bool(d, "pps"),
        device=_str(d, "device"),
        devices=_devices(d),
    )


def parse_json_object(raw: Union[bytes, str]) -> Any:
    """Decode one daemon report into the matching object.

    Returns a Watch, list of Device, Device, Version, Sky, TPV, or a plain dict
    for unknown classes. Raises RuntimeError for ERROR reports and ValueError
    for malformed input.
    """
    d = _lower(json.loads(raw))
    cls = _str(d, "class")
    if cls == "WATCH":
        return _watch(d)
    if cls == "DEVICES":
        return _devices(d)
    if cls == "DEVICE":
        return _device(d)
    if cls == "VERSION":
        return _version(d)
    if cls == "ERROR":
        raise RuntimeError(_str(d, "message"))
    if cls == "SKY":
        return _sky(d)
    if cls == "TPV":
        return _tpv(d)
    return json.loads(raw)


class Conn:
    """A socket connection to a GPSd daemon."""

    def __init__(self, sock: socket.socket, version: Optional[Version] = None) -> None:
        self.version = version or Version()
        self.watch_enabled = False
        self.closed = False
        self._sock = sock
        self._buf = bytearray()
        self._lock = threading.Lock()

    def __enter__(self) -> "Conn":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _read_line(self) -> bytes:
        while True:
            idx = self._buf.find(b"\n")
            if idx >= 0:
                line = bytes(self._buf[: idx + 1])
                del self._buf[: idx + 1]
                return line
            chunk = self._sock.recv(4096)
            if not chunk:
                raise EOFError("connection closed by GPSd")
            self._buf += chunk

    def _next(self) -> Any:
        return parse_json_object(self._read_line())

    def _send(self, text: str) -> None:
        self._sock.sendall(text.encode("utf-8"))

    def _set_timeout(self, timeout: Optional[float]) -> None:
        with contextlib.suppress(OSError):
            self._sock.settimeout(timeout)

    def watch(self, enable: bool) -> bool:
        """Switch watch mode on or off and return the resulting state.

        In watch mode the daemon streams TPV and SKY reports, read with next().
        """
        with self._lock:
            if self.closed:
                return False
            if enable == self.watch_enabled:
                return enable
            self._set_timeout(30)
            try:
                param = json.dumps(
                    {"class": "WATCH", "enable": enable, "json": True},
                    separators=(",", ":"),
                )
                self._send("?WATCH=" + param)
                while True:
                    obj = self._next()
                    if isinstance(obj, Watch):
                        self.watch_enabled = obj.enable
                        break
            except (OSError, EOFError, ValueError, RuntimeError):
                return False
            finally:
                self._set_timeout(None)
            return self.watch_enabled

    def close(self) -> None:
        """Leave watch mode and close the connection."""
        self.watch(False)
        self.closed = True
        self._sock.close()

    def next(self) -> Union[TPV, Sky]:
        """Return the next TPV or Sky report, skipping other objects."""
        with self._lock:
            while True:
                obj = self._next()
                if isinstance(obj, (TPV, Sky)):
                    return obj

    def next_pos(self) -> Position:
        """Return the next position with a fix, waiting as long as it takes."""
        return self.next_pos_timeout(0)

    def next_pos_timeout(self, timeout: float) -> Position:
        """Return the next position with a fix.

        A timeout in seconds above zero bounds the wait; GPSdTimeoutError is
        raised when it passes.
        """
        deadline = time.monotonic() + timeout if timeout > 0 else None
        try:
            while True:
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise GPSdTimeoutError()
                    self._sock.settimeout(remaining)
                try:
                    obj = self.next()
                except socket.timeout as exc:
                    raise GPSdTimeoutError() from exc
                if isinstance(obj, TPV) and obj.has_fix():
                    return obj.position()
        finally:
            if deadline is not None:
                self._set_timeout(None)

    def devices(self) -> list[Device]:
        """Return the devices the daemon knows about.

        Returns an empty list once closed; raises WatchModeEnabledError in watch mode.
        """
        if self.closed:
            return []
        if self.watch_enabled:
            raise WatchModeEnabledError()
        with self._lock:
            self._send("?DEVICES;")
            while True:
                obj = self._next()
                if isinstance(obj, list):
                    return obj


def dial(addr: str) -> Conn:
    """Connect to the daemon at "host:port" and check its protocol version."""
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr!r}")
    host = host.strip("[]") or "localhost"
    sock = socket.create_connection((host, int(port)), timeout=30)
    conn = Conn(sock)
    try:
        version = _version(_lower(json.loads(conn._read_line())))
    except (OSError, EOFError, ValueError) as exc:
        sock.close()
        raise ConnectionError("unexpected server response") from exc
    if not version.release:
        sock.close()
        raise ConnectionError("unexpected server response")
    if version.proto_major < 3:
        sock.close()
        raise UnsupportedProtocolVersionError()
    sock.settimeout(None)
    conn.version = version
    return conn