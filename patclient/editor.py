"""Launching the user's text editor."""

import os
import shutil
import subprocess
import sys
import tempfile

from patclient.buildinfo import APP_NAME


def executable() -> str:
    """Return the editor to use, honouring $EDITOR and $VISUAL."""
    for var in ("EDITOR", "VISUAL"):
        value = os.environ.get(var, "")
        if value:
            return value
    if sys.platform == "win32":
        return "notepad"
    if sys.platform.startswith("linux"):
        path = shutil.which("editor")
        if path:
            return path
    return "vi"


def open_file(path: str) -> None:
    """Open path in the editor and wait for it to exit.

    Raises subprocess.CalledProcessError if the editor exits with an error.
    """
    subprocess.run([executable(), path], check=True)


def edit_text(template: str) -> str:
    """Let the user edit template in the editor and return the result."""
    try:
        fd, path = tempfile.mkstemp(prefix=APP_NAME.lower() + "_edit_", suffix=".txt")
    except OSError as exc:
        raise RuntimeError(f"Unable to prepare temporary file for body: {exc}") from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(template)
        try:
            open_file(path)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise RuntimeError(f"Unable to start text editor: {exc}") from exc
        try:
            with open(path, encoding="utf-8", newline="") as f:
                return f.read()
        except OSError as exc:
            raise RuntimeError(f"Unable to read temporary file from editor: {exc}") from exc
    finally:
        try:
            os.remove(path)
        except OSError:
            pass