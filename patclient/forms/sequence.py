"""A persistent sequence number stored as JSON in a file."""

import json
import os
from typing import Optional

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


class Sequence:
    """A sequence number kept in a file.

    A failure to open the file is reported by every later operation.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._file = None
        self._error: Optional[OSError] = None
        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
            self._file = os.fdopen(fd, "r+b")
        except OSError as exc:
            self._error = exc

    def __enter__(self) -> "Sequence":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _handle(self):
        if self._error is not None:
            err = self._error
            raise OSError(err.errno, err.strerror, err.filename)
        return self._file

    def close(self) -> None:
        """Close the file, raising the open error if there was one."""
        self._handle().close()

    def load(self) -> int:
        """Return the stored value; an empty file holds 0.

        Raises ValueError if the file does not hold an integer.
        """
        f = self._handle()
        f.seek(0)
        text = f.read().decode("utf-8").lstrip(" \t\r\n")
        if not text:
            return 0
        value, _ = json.JSONDecoder().raw_decode(text)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"sequence file holds {value!r}, not an integer")
        if not _INT64_MIN <= value <= _INT64_MAX:
            raise ValueError(f"sequence value {value} out of range")
        return value

    def set(self, seq: int) -> int:
        """Store seq and return it."""
        if isinstance(seq, bool) or not isinstance(seq, int):
            raise TypeError("sequence value must be an integer")
        f = self._handle()
        f.truncate(0)
        f.seek(0)
        f.write(json.dumps(seq).encode("utf-8") + b"\n")
        f.flush()
        os.fsync(f.fileno())
        return seq

    def incr(self, increment: int) -> int:
        """Add increment to the stored value and return the new value."""
        return self.set(self.load() + increment)


def open_sequence(path: str) -> Sequence:
    """Open (creating if needed) the sequence file at path."""
    return Sequence(path)