"""Extraction of form template archives."""

import os
import shutil
import zipfile

_UNIX = 3


def _mode(info: zipfile.ZipInfo) -> int:
    perm = (info.external_attr >> 16) & 0o777
    if info.create_system == _UNIX and perm:
        return perm
    return 0o666


def unzip(src_archive_path: str, dst_root: str) -> None:
    """Extract the files of a zip archive below dst_root.

    Raises ValueError for entries that would land outside dst_root.
    """
    root_prefix = os.path.normpath(dst_root) + os.sep
    with zipfile.ZipFile(src_archive_path) as archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            dest_path = os.path.normpath(dst_root + os.sep + info.filename)
            if not dest_path.startswith(root_prefix):
                raise ValueError(f"illegal file path: {dest_path}")
            try:
                os.makedirs(os.path.dirname(dest_path), mode=0o755, exist_ok=True)
            except OSError as exc:
                raise OSError(f"can't create target directory: {exc}") from exc
            fd = os.open(dest_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _mode(info))
            with archive.open(info) as src, os.fdopen(fd, "wb") as dst:
                shutil.copyfileobj(src, dst)