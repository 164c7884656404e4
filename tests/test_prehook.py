import io
import os
import socket
import subprocess
import sys
import threading
import time

import pytest

from patclient import prehook


def _reader(data: bytes) -> io.BufferedReader:
    return io.BufferedReader(io.BytesIO(data))


def test_forward_lines_converts_cr_and_drops_empty_lines():
    writer = io.BytesIO()
    with pytest.raises(EOFError):
        prehook.forward_lines(writer, _reader(b"\r\nabc\rdef\n"), threading.Event())
    assert writer.getvalue() == b"abc\ndef\n"


def test_forward_lines_flushes_partial_line_on_eof():
    writer = io.BytesIO()
    with pytest.raises(EOFError):
        prehook.forward_lines(writer, _reader(b"abc\nxy"), threading.Event())
    assert writer.getvalue() == b"abc\nxy"


def test_forward_lines_stops_before_next_line():
    stopped = threading.Event()
    stopped.set()
    reader = _reader(b"\n\nabc")
    writer = io.BytesIO()
    prehook.forward_lines(writer, reader, stopped)
    assert writer.getvalue() == b""
    assert reader.read() == b"abc"


def test_script_execute_requires_wrapped_conn():
    script = prehook.Script(sys.executable)
    with pytest.raises(prehook.ConnNotWrappedError):
        script.execute(object())


def test_verify_resolves_and_rejects():
    assert os.path.samefile(prehook.verify(sys.executable), sys.executable)
    with pytest.raises(FileNotFoundError):
        prehook.verify("no-such-prehook-script-xyz")


def test_conn_read_write_roundtrip():
    local, remote = socket.socketpair()
    with prehook.wrap(local) as conn:
        assert conn.write(b"ping") == 4
        assert remote.recv(16) == b"ping"
        remote.sendall(b"pong")
        assert conn.read(16) == b"pong"
    remote.close()


def test_execute_missing_program():
    local, remote = socket.socketpair()
    with prehook.wrap(local) as conn:
        with pytest.raises(FileNotFoundError):
            conn.execute(prehook.Script(os.path.join("no", "such", "prehook")))
    remote.close()


def test_execute_reports_exit_status():
    local, remote = socket.socketpair()
    conn = prehook.wrap(local)
    code = "import sys; sys.stdin.buffer.readline(); sys.exit(3)"

    def remote_side():
        remote.sendall(b"x\n")
        time.sleep(1.0)
        remote.sendall(b"more\n")

    thread = threading.Thread(target=remote_side)
    thread.start()
    with pytest.raises(subprocess.CalledProcessError) as info:
        conn.execute(prehook.Script(sys.executable, ["-c", code]))
    thread.join(10)
    assert info.value.returncode == 3
    conn.close()
    remote.close()