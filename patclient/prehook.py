"""Connection prehooks.

A prehook is an external program that handles any negotiation a remote node
needs (for example packet node traversal) before the message exchange starts.
"""

import os
import shutil
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Mapping, Optional

from patclient import debug

_DELIMITERS = (b"\n", b"\r")


class ConnNotWrappedError(Exception):
    """The connection was not wrapped for prehook execution."""

    def __init__(self, message: str = "connection not wrapped for prehook") -> None:
        super().__init__(message)


def _debugf(message: str, *args) -> None:
    debug.printf("prehook: " + message, *args)


@dataclass
class Script:
    """An executable with arguments and environment to run as a prehook."""

    file: str
    args: list[str] = field(default_factory=list)
    env: Optional[Mapping[str, str]] = None

    def execute(self, conn: object) -> None:
        """Run this script on a wrapped connection."""
        if isinstance(conn, Conn):
            conn.execute(self)
            return
        raise ConnNotWrappedError()


def verify(file: str) -> str:
    """Return the resolved path of an executable script.

    Raises FileNotFoundError if the file is not found or not executable.
    """
    path = shutil.which(file)
    if path is None:
        raise FileNotFoundError(f"executable file not found: {file}")
    return path


def wrap(conn) -> "Conn":
    """Wrap a socket so that a prehook can be executed on it."""
    return Conn(conn)


class Conn:
    """A buffered socket connection able to run prehooks.

    Use it in place of the original socket for the lifetime of the connection,
    as it may hold data read but not consumed by the prehook.
    """

    def __init__(self, sock) -> None:
        self.sock = sock
        self._reader = sock.makefile("rb")

    def read(self, size: int) -> bytes:
        """Read at most size bytes."""
        return self._reader.read1(size)

    def write(self, data: bytes) -> int:
        """Write all of data and return its length."""
        self.sock.sendall(data)
        return len(data)

    def close(self) -> None:
        """Close the connection."""
        self._reader.close()
        self.sock.close()

    def __enter__(self) -> "Conn":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def execute(self, script: Script) -> None:
        """Run the script, raising if it fails or the connection is lost.

        Raises subprocess.CalledProcessError on a non-zero exit status.
        """
        argv = [script.file, *script.args]
        env = dict(script.env) if script.env is not None else None
        _debugf("start cmd: %s", argv)
        proc = subprocess.Popen(argv, stdin=subprocess.PIPE, stdout=subprocess.PIPE, env=env)

        stopped = threading.Event()
        lock = threading.Lock()
        errors: list[BaseException] = []

        def fail(exc: BaseException) -> None:
            with lock:
                if not errors:
                    errors.append(exc)
            stopped.set()
            try:
                proc.kill()
            except OSError:
                pass

        def forward() -> None:
            try:
                forward_lines(proc.stdin, self._reader, stopped)
            except Exception as exc:  # first error aborts the whole prehook
                fail(exc)
            finally:
                try:
                    proc.stdin.close()
                except OSError:
                    pass

        def pump() -> None:
            try:
                while chunk := proc.stdout.read1(4096):
                    self.sock.sendall(chunk)
            except OSError as exc:
                fail(exc)

        forwarder = threading.Thread(target=forward, daemon=True)
        pumper = threading.Thread(target=pump, daemon=True)
        forwarder.start()
        pumper.start()

        returncode = proc.wait()
        pumper.join()
        if returncode != 0:
            fail(subprocess.CalledProcessError(returncode, argv))
        stopped.set()
        forwarder.join()
        proc.stdout.close()

        if errors:
            raise errors[0]


def forward_lines(writer: BinaryIO, reader, stopped: threading.Event) -> None:
    """Forward data from reader to writer line by line.

    Lines end with CR or LF; each is forwarded with an LF ending and echoed to
    stdout. Empty lines are dropped. Returns once stopped is set between lines,
    raises EOFError if the reader is exhausted and ConnectionError if the
    writer goes away.
    """
    pending = bytearray()

    def flush() -> None:
        writer.write(bytes(pending))
        writer.flush()
        sys.stdout.write(pending.decode("utf-8", errors="replace"))
        sys.stdout.flush()
        pending.clear()

    in_line = False
    try:
        while True:
            if not in_line:
                _debugf("wait next line")
                peek = reader.peek(1)[:1]
                if not peek:
                    _debugf("connection lost while waiting for next line")
                    raise EOFError("connection lost")
                if peek in _DELIMITERS:
                    _debugf("discard %r", peek)
                    reader.read(1)
                    continue
                if stopped.is_set():
                    _debugf("cmd exited while waiting for next line")
                    return
                _debugf("at next line")

            byte = reader.read(1)
            if not byte:
                _debugf("connection lost while reading next byte")
                raise EOFError("connection lost")
            if byte == b"\r":
                byte = b"\n"
            pending += byte

            in_line = byte not in _DELIMITERS
            if in_line:
                continue

            try:
                flush()
            except (OSError, ValueError) as exc:
                raise ConnectionError(f"child process exited prematurely: {exc}") from exc
            if stopped.wait(0.1):
                return
    finally:
        if pending:
            try:
                flush()
            except (OSError, ValueError):
                pass


__all__ = [
    "ConnNotWrappedError",
    "Script",
    "Conn",
    "verify",
    "wrap",
    "forward_lines",
]

_ = os  # environment handling relies on os for inherited variables