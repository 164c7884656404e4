"""Winlink message templates and the files they reference."""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from patclient import debug
from patclient.directories import is_in_path
from patclient.forms.fileio import read_lines

_log = logging.getLogger(__name__)

HTML_FILE_EXT = ".html"
TXT_FILE_EXT = ".txt"
REPLY_FILE_EXT = ".0"

_GUESS_EXTS = (HTML_FILE_EXT, REPLY_FILE_EXT, TXT_FILE_EXT)


def _ext(path: str) -> str:
    base = path
    for sep in (os.sep, os.altsep):
        if sep:
            base = base.rsplit(sep, 1)[-1]
    idx = base.rfind(".")
    return base[idx:] if idx >= 0 else ""


def _join(*parts: str) -> str:
    parts = tuple(p for p in parts if p)
    return os.path.normpath(os.sep.join(parts)) if parts else ""


@dataclass
class Template:
    """A Winlink template and the forms it references.

    path is absolute, except where relative paths are used for the web GUI.
    The referenced paths are absolute, or empty when absent.
    """

    name: str
    path: str
    input_form_path: str = ""
    display_form_path: str = ""
    reply_template_path: str = ""


@dataclass
class FormFilesMap:
    """Lower case file names of HTML forms and reply templates mapped to their paths."""

    files: dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> Optional[str]:
        """Return the path of name, guessing the extension if it has none."""
        path = self.files.get(name.lower())
        if path is not None:
            return path
        if _ext(name):
            return None
        for ext in _GUESS_EXTS:
            path = self.get(name + ext)
            if path:
                debug.printf("found %r (in map) by guessing file extension (%s)", name, ext)
                return path
        return None


def read_template(path: str, files_map: FormFilesMap) -> Template:
    """Read the template at path and resolve the files it references."""
    lines = read_lines(path)
    base_name = os.path.basename(path)
    ext = _ext(path)
    template = Template(
        name=base_name[: len(base_name) - len(ext)] if ext else base_name,
        path=path,
    )
    base_path = os.path.dirname(path) or "."

    def resolve(kind: str, ref: str) -> str:
        if ref == "":
            return ""
        resolved = resolve_file_reference(files_map, base_path, ref.strip())
        if not resolved:
            debug_name = os.path.join(os.path.basename(base_path), base_name)
            debug.printf("%s: failed to resolve referenced %s %r", debug_name, kind, ref)
        return resolved or ""

    for line in lines:
        key, _, value = line.partition(":")
        if key == "Form":  # Form: <input form>[,<display form>]
            input_form, _, display_form = value.partition(",")
            template.input_form_path = resolve("input form", input_form)
            template.display_form_path = resolve("display form", display_form)
        elif key == "ReplyTemplate":  # ReplyTemplate: <template>
            template.reply_template_path = resolve("reply template", value)
    return template


def resolve_file_reference(files_map: FormFilesMap, base_path: str, reference_path: str) -> Optional[str]:
    """Find a file referenced from a template in base_path.

    Tries the path as given, then with a guessed extension, then a lookup by
    file name. Returns None if not found or if the reference escapes base_path.
    """
    path = _join(base_path, reference_path)
    try:
        inside = is_in_path(base_path, path)
    except ValueError:
        inside = False
    if not inside:
        debug.printf("%r escapes template's base path (%r)", reference_path, base_path)
        return None
    if os.path.exists(path):
        return path
    debug_name = os.path.join(os.path.basename(base_path), reference_path)
    for ext in _GUESS_EXTS:
        if os.path.exists(path + ext):
            debug.printf("found %r by guessing file extension (%s)", debug_name, ext)
            return path + ext
    found = files_map.get(reference_path)
    if found:
        debug.printf("found %r by map based lookup", debug_name)
        return found
    return None


def form_files_from_path(base_path: str) -> FormFilesMap:
    """Map the names of all HTML forms and reply templates below base_path to their paths.

    Where names repeat, the last one in walk order wins.
    """
    files: dict[str, str] = {}

    def add(name: str, path: str) -> None:
        name = name.lower()
        if _ext(name) not in (HTML_FILE_EXT, REPLY_FILE_EXT):
            return
        if name in files:
            debug.printf("duplicate filenames: %r, %r", path, files[name])
        files[name] = path

    def walk(directory: str) -> None:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            full = _join(directory, entry.name)
            if entry.is_dir(follow_symlinks=False):
                walk(full)
            else:
                add(entry.name, full)

    try:
        walk(base_path)
    except OSError as exc:
        _log.warning("failed to walk path %r: %s", base_path, exc)
    return FormFilesMap(files)