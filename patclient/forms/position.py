"""Formatting of GPS positions for insertion tags."""

import enum
import math

from patclient.gpsd import Position

NOT_AVAILABLE = "(Not available)"


class GPSStyle(enum.IntEnum):
    """Position formats."""

    SIGNED_DECIMAL = 0  # 41.1234 -73.4567
    DECIMAL = 1  # 46.3795N 121.5835W
    DEGREE_MINUTE = 2  # 46-22.77N 121-35.01W
    GRID_SQUARE = 3  # JO29PJ


def grid_square(lat: float, lon: float) -> str:
    """Return the six character Maidenhead locator of a position.

    Raises ValueError for coordinates out of range.
    """
    if math.isnan(lat) or not -90 <= lat <= 90:
        raise ValueError(f"invalid latitude {lat}")
    if math.isnan(lon) or not -180 <= lon <= 180:
        raise ValueError(f"invalid longitude {lon}")
    x = min(lon + 180, math.nextafter(360, 0))
    y = min(lat + 90, math.nextafter(180, 0))
    return "".join((
        chr(ord("A") + int(x // 20)),
        chr(ord("A") + int(y // 10)),
        str(int((x % 20) // 2)),
        str(int(y % 10)),
        chr(ord("A") + int((x % 2) * 12)),
        chr(ord("A") + int((y % 1) * 24)),
    ))


def position_fmt(style: GPSStyle, pos: Position) -> str:
    """Format pos in the given style, or "(Not available)" for no position."""
    if pos == Position():
        return NOT_AVAILABLE
    if style == GPSStyle.GRID_SQUARE:
        try:
            return grid_square(pos.lat, pos.lon)
        except ValueError:
            return NOT_AVAILABLE
    if style == GPSStyle.SIGNED_DECIMAL:
        return f"{pos.lat:.4f} {pos.lon:.4f}"

    northing = "N" if pos.lat >= 0 else "S"
    easting = "E" if pos.lon >= 0 else "W"
    if style == GPSStyle.DECIMAL:
        return f"{abs(pos.lat):.4f}{northing} {abs(pos.lon):.4f}{easting}"
    if style == GPSStyle.DEGREE_MINUTE:
        lat_deg = int(math.trunc(abs(pos.lat)))
        lat_min = (abs(pos.lat) - lat_deg) * 60
        lon_deg = int(math.trunc(abs(pos.lon)))
        lon_min = (abs(pos.lon) - lon_deg) * 60
        return (
            f"{lat_deg:02d}-{lat_min:05.2f}{northing} "
            f"{lon_deg:03d}-{lon_min:05.2f}{easting}"
        )
    raise ValueError("invalid style")