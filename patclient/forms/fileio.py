"""Reading of template and form files."""

import logging

_log = logging.getLogger(__name__)

BOM = "\ufeff".encode("utf-8")
"""UTF-8 encoded byte order mark, used by some third party templates."""


def trim_bom(data: bytes) -> bytes:
    """Strip any leading UTF-8 byte order marks from data."""
    while data.startswith(BOM):
        data = data[len(BOM):]
    return data


def read_file(path: str) -> str:
    """Return the text of a file without leading byte order marks.

    Invalid UTF-8 is logged as a warning and replaced.
    """
    with open(path, "rb") as f:
        data = trim_bom(f.read())
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        _log.warning("Warning: unsupported string encoding in file %r, expected UTF-8", path)
        return data.decode("utf-8", errors="replace")


def read_lines(path: str) -> list[str]:
    """Return the lines of a file without line endings or a leading byte order mark.

    Lines end with LF; a CR before the LF is dropped as well.
    """
    with open(path, "rb") as f:
        data = f.read()
    if data.startswith(BOM):
        data = data[len(BOM):]
    lines = data.split(b"\n")
    if lines[-1] == b"":
        lines.pop()
    return [
        (line[:-1] if line.endswith(b"\r") else line).decode("utf-8", errors="replace")
        for line in lines
    ]