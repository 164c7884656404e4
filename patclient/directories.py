"""Per-user data, config and state directories, and legacy migration."""

import glob
import logging
import os
import sys
import threading
from pathlib import Path

from patclient import debug
from patclient.buildinfo import APP_NAME

_log = logging.getLogger(__name__)
_lock = threading.Lock()


def is_in_path(parent: str, sub: str) -> bool:
    """Return True if sub is inside (or equal to) parent.

    Both paths must be either absolute or relative.
    """
    parent, sub = os.path.normpath(parent), os.path.normpath(sub)
    if os.path.isabs(parent) != os.path.isabs(sub):
        raise ValueError("mix of rel and abs paths")
    try:
        rel = os.path.relpath(sub, parent)
    except ValueError:
        return False
    return rel != ".." and not rel.startswith(".." + os.sep)


def _base(env_var: str, *posix_default: str) -> str:
    value = os.environ.get(env_var, "")
    if value and os.path.isabs(value):
        return value
    if sys.platform == "win32":
        return os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    if sys.platform == "darwin":
        return str(Path.home() / "Library" / "Application Support")
    return str(Path.home().joinpath(*posix_default))


def _get_dir(base: str, method_name: str) -> str:
    path = os.path.join(base, APP_NAME.lower())
    with _lock:
        try:
            os.makedirs(path, mode=0o755, exist_ok=True)
        except OSError as exc:
            raise OSError(f"unable to create or open {method_name} {path}: {exc}") from exc
    return path


def data_dir() -> str:
    """Return the application's data directory, creating it if needed."""
    return _get_dir(_base("XDG_DATA_HOME", ".local", "share"), "DataDir")


def config_dir() -> str:
    """Return the application's config directory, creating it if needed."""
    return _get_dir(_base("XDG_CONFIG_HOME", ".config"), "ConfigDir")


def state_dir() -> str:
    """Return the application's state directory, creating it if needed."""
    return _get_dir(_base("XDG_STATE_HOME", ".local", "state"), "StateDir")


def migrate_legacy_data_dir() -> None:
    """Move files from the legacy ~/.wl2k directory into the new locations."""
    legacy = str(Path.home() / ".wl2k")
    if not os.path.exists(legacy):
        debug.printf("tried to migrate from %s but it doesn't exist; nothing to do", legacy)
        return
    if not os.path.isdir(legacy):
        _log.info("tried to migrate from %s but it's not a directory, that's weird; ignoring", legacy)
        return

    _log.info("Migrating your Pat files from %s to new locations", legacy)
    migrate_file("config.json", legacy, config_dir())
    migrate_file("mailbox", legacy, data_dir())
    migrate_file("Standard_Forms", legacy, data_dir())
    for match in sorted(glob.glob(os.path.join(glob.escape(legacy), "rmslist*.json"))):
        migrate_file(os.path.basename(match), legacy, data_dir())

    debug.printf("migration from %s finished, renaming it", legacy)
    os.rename(legacy, legacy + "-old")


def migrate_file(file_name: str, from_dir: str, to_dir: str) -> None:
    """Move from_dir/file_name to to_dir, never clobbering an existing target."""
    from_file = os.path.join(from_dir, file_name)
    if not os.path.lexists(from_file):
        debug.printf("File %s doesn't exist, not migrating it", from_file)
        return

    to_file = os.path.join(to_dir, file_name)
    try:
        fd = os.open(to_file, os.O_RDWR | os.O_CREAT | os.O_EXCL, 0o666)
    except FileExistsError:
        debug.printf("new file %s already exists; ignoring %s", to_file, from_file)
        return
    os.close(fd)
    os.remove(to_file)

    debug.printf("Migrating %s from %s to %s", file_name, from_dir, to_dir)
    os.rename(from_file, to_file)