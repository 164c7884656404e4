"""Date and time formats used by form insertion tags."""

from datetime import datetime, timezone, tzinfo
from typing import Optional

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday",
             "Friday", "Saturday", "Sunday")


def _date(t: datetime) -> str:
    return f"{t.year:04d}-{t.month:02d}-{t.day:02d}"


def _time(t: datetime) -> str:
    return f"{t.hour:02d}:{t.minute:02d}:{t.second:02d}"


def _utc(t: datetime) -> datetime:
    return t.astimezone(timezone.utc)


def format_date_time(t: datetime, tz: Optional[tzinfo] = None) -> str:
    """Format as "YYYY-MM-DD hh:mm:ss" in tz (local time by default)."""
    local = t.astimezone(tz)
    return f"{_date(local)} {_time(local)}"


def format_date_time_utc(t: datetime) -> str:
    """Format as "YYYY-MM-DD hh:mm:ssZ" in UTC."""
    u = _utc(t)
    return f"{_date(u)} {_time(u)}Z"


def format_date(t: datetime, tz: Optional[tzinfo] = None) -> str:
    """Format as "YYYY-MM-DD" in tz (local time by default)."""
    return _date(t.astimezone(tz))


def format_time(t: datetime, tz: Optional[tzinfo] = None) -> str:
    """Format as "hh:mm:ss" in tz (local time by default)."""
    return _time(t.astimezone(tz))


def format_date_utc(t: datetime) -> str:
    """Format as "YYYY-MM-DDZ" in UTC."""
    return _date(_utc(t)) + "Z"


def format_time_utc(t: datetime) -> str:
    """Format as "hh:mm:ssZ" in UTC."""
    return _time(_utc(t)) + "Z"


def format_udtg(t: datetime) -> str:
    """Format as a UTC date-time group, e.g. "010359Z JAN 2024"."""
    u = _utc(t)
    return f"{u.day:02d}{u.hour:02d}{u.minute:02d}Z {_MONTHS[u.month - 1]} {u.year:04d}".upper()


def format_day(t: datetime, tz: Optional[tzinfo] = None) -> str:
    """Return the English weekday name of t in tz (local time by default)."""
    return _WEEKDAYS[t.astimezone(tz).weekday()]