"""The forms subsystem: template catalogue, form rendering and updates."""

import json
import logging
import os
import re
import tempfile
import threading
import urllib.error
import urllib.parse
import urllib.request
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Mapping, Optional
from xml.sax.saxutils import escape

from patclient import debug
from patclient.directories import is_in_path
from patclient.forms.builder import (
    Message,
    MessageBuilder,
    OriginalMessage,
    insertion_tag_replacer,
    is_internet_available,
    variable_replacer,
)
from patclient.forms.fileio import read_file, trim_bom
from patclient.forms.sequence import open_sequence
from patclient.forms.settings import FormsConfig
from patclient.forms.template import (
    HTML_FILE_EXT,
    REPLY_FILE_EXT,
    TXT_FILE_EXT,
    FormFilesMap,
    Template,
    form_files_from_path,
    read_template,
)
from patclient.forms.unzip import unzip

_log = logging.getLogger(__name__)

FORMS_VERSION_INFO_URL = "https://api.getpat.io/v1/forms/standard-templates/latest"
VERSION_FILE = "Standard_Forms_Version.dat"
_MAX_FORM_DATA_AGE = timedelta(hours=24)
_INT_RE = re.compile(r"[+-]?[0-9]+")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _inner_xml(element: ET.Element) -> str:
    parts = [escape(element.text or "")]
    parts.extend(ET.tostring(child, encoding="unicode") for child in element)
    return "".join(parts)


def _parse_int16(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        return 0
    return max(-32768, min(32767, int(text)))


def _has_ext(name: str) -> bool:
    base = os.path.basename(name)
    return "." in base


@dataclass
class FormFolder:
    """A folder of templates with input forms, and its sub-folders."""

    name: str
    path: str
    version: str = ""
    form_count: int = 0
    forms: list[Template] = field(default_factory=list)
    folders: list["FormFolder"] = field(default_factory=list)

    def as_dict(self) -> dict:
        """Return the JSON representation used by the web GUI."""
        return {
            "name": self.name,
            "path": self.path,
            "version": self.version,
            "form_count": self.form_count,
            "forms": [{"name": t.name, "template_path": t.path} for t in self.forms],
            "folders": [f.as_dict() for f in self.folders],
        }


@dataclass
class UpdateResponse:
    """Outcome of a form templates update."""

    newest_version: str
    action: str

    def as_dict(self) -> dict[str, str]:
        """Return the JSON representation used by the web GUI."""
        return {"newestVersion": self.newest_version, "action": self.action}


class Manager:
    """Manages form templates, posted form data and the template sequence."""

    def __init__(
        self,
        config: FormsConfig,
        now: Optional[Callable[[], datetime]] = None,
        tz: Optional[tzinfo] = None,
        internet_check: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.config = config
        self.now = now or _utc_now
        self.tz = tz
        self.internet_check = internet_check or is_internet_available
        try:
            os.makedirs(config.forms_path, mode=0o755, exist_ok=True)
        except OSError:
            pass
        self.sequence = open_sequence(config.sequence_path)
        self._posted: dict[str, Message] = {}
        self._lock = threading.RLock()

    def __enter__(self) -> "Manager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release the sequence file."""
        try:
            self.sequence.close()
        except OSError:
            pass

    def seq_set(self, value: int) -> None:
        """Set the template sequence number."""
        self.sequence.set(int(value))

    def _builder(self, template: Template, form_values: dict, interactive: bool,
                 in_reply_to: Optional[OriginalMessage]) -> MessageBuilder:
        return MessageBuilder(
            template=template,
            config=self.config,
            form_values=form_values,
            sequence=self.sequence,
            interactive=interactive,
            in_reply_to=in_reply_to,
            now=self.now,
            tz=self.tz,
            internet_check=self.internet_check,
        )

    # --- paths ---

    def abs_path(self, path: str) -> str:
        """Resolve a path relative to the forms directory."""
        if os.path.isabs(path):
            return path
        return os.path.join(self.config.forms_path, path)

    def rel_path(self, path: str) -> str:
        """Return an absolute path relative to the forms directory."""
        if not os.path.isabs(path):
            return path
        return os.path.relpath(path, self.config.forms_path)

    # --- versions and updates ---

    def forms_version(self) -> str:
        """Return the installed forms version, or "unknown"."""
        try:
            text = read_file(self.abs_path(VERSION_FILE))
        except OSError as exc:
            debug.printf("failed to open version file: %s", exc)
            return "unknown"
        return "".join(ch for ch in text if not ch.isspace())

    def is_newer_version(self, newest_version: str) -> bool:
        """Return True if any of the first four parts of newest_version is above the installed one."""
        current = self.forms_version().split(".")
        newest = newest_version.split(".")
        for i in range(4):
            cp = _parse_int16(current[i]) if i < len(current) else 0
            np = _parse_int16(newest[i]) if i < len(newest) else 0
            if cp < np:
                return True
        return False

    def _get(self, url: str) -> tuple[int, bytes]:
        req = urllib.request.Request(url, headers={
            "User-Agent": self.config.user_agent,
            "Cache-Control": "no-cache",
        })
        with urllib.request.urlopen(req, timeout=10) as resp:
            return getattr(resp, "status", 200), resp.read()

    def _latest_forms_info(self) -> dict:
        try:
            status, data = self._get(FORMS_VERSION_INFO_URL)
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"can't fetch winlink forms version page: {exc}") from exc
        if status != 200:
            raise RuntimeError(f"can't fetch winlink forms version page: status {status}")
        info = json.loads(data)
        if not isinstance(info, dict):
            raise ValueError("unexpected forms version info")
        return info

    def _download_and_unzip(self, link: str) -> None:
        _log.info("Updating forms via %s", link)
        try:
            _, data = self._get(link)
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"can't download update ZIP: {exc}") from exc
        fd, tmp = tempfile.mkstemp(prefix="pat")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            try:
                unzip(tmp, self.config.forms_path)
            except (OSError, ValueError, zipfile.BadZipFile) as exc:
                raise RuntimeError(f"can't unzip forms update: {exc}") from exc
        finally:
            try:
                os.remove(tmp)
            except OSError:
                pass

    def update_form_templates(self) -> UpdateResponse:
        """Download and install the latest form templates if newer than those installed."""
        try:
            os.makedirs(self.config.forms_path, mode=0o755, exist_ok=True)
        except OSError as exc:
            raise OSError(f"can't write to forms dir [{exc}]") from exc
        _log.info("Updating form templates; current version is %s", self.forms_version())
        latest = self._latest_forms_info()
        version = str(latest.get("version", ""))
        if not self.is_newer_version(version):
            _log.info("Latest forms version is %s; nothing to do", version)
            return UpdateResponse(newest_version=version, action="none")
        self._download_and_unzip(str(latest.get("archive_url", "")))
        _log.info("Finished forms update to %s", version)
        return UpdateResponse(newest_version=version, action="update")

    # --- rendering and composing ---

    def fill_form_template(
        self,
        template_path: str,
        in_reply_to: Optional[OriginalMessage],
        form_dest_url: str,
        form_vars: Optional[Mapping[str, str]],
    ) -> str:
        """Return an HTML form with the submit URL, insertion tags and variables filled in."""
        data = read_file(template_path)
        data = data.replace("http://{FormServer}:{FormPort}", form_dest_url)
        data = data.replace("http://localhost:8001", form_dest_url)
        data = insertion_tag_replacer(
            self.config, self.sequence, in_reply_to, "{", "}",
            self.now(), self.tz, self.internet_check,
        )(data)
        return variable_replacer("{", "}", form_vars or {})(data)

    def render_form(
        self,
        data: bytes,
        in_reply_to: Optional[OriginalMessage] = None,
        in_reply_to_path: str = "",
    ) -> str:
        """Return the filled-in HTML form for a form XML attachment.

        With in_reply_to_path set, the reply template's input form is returned.
        """
        data = trim_bom(bytes(data))
        try:
            data.decode("utf-8")
        except UnicodeDecodeError:
            _log.warning("Warning: unsupported string encoding in form XML, expected UTF-8")
        try:
            root = ET.fromstring(data)
        except ET.ParseError as exc:
            raise ValueError(f"invalid form XML: {exc}") from exc
        if _local(root.tag) != "RMS_Express_Form":
            raise ValueError("missing RMS_Express_Form tag in form XML")

        params: dict[str, str] = {}
        variables: dict[str, str] = {}
        for section in root:
            target = {"form_parameters": params, "variables": variables}.get(_local(section.tag))
            if target is None:
                continue
            for node in section:
                target[_local(node.tag)] = _inner_xml(node)

        files_map = form_files_from_path(self.config.forms_path)
        if in_reply_to_path:
            reply_template = params.get("reply_template", "")
            if not reply_template:
                raise ValueError("missing reply_template tag in form XML for a reply message")
            if not _has_ext(reply_template):
                reply_template += REPLY_FILE_EXT
            path = files_map.get(reply_template)
            if not path:
                raise FileNotFoundError(f"reply template not found: {reply_template!r}")
            try:
                template = read_template(path, files_map)
            except OSError as exc:
                raise OSError(f"failed to read referenced reply template: {exc}") from exc
            submit_url = (
                "/api/form?in-reply-to=" + urllib.parse.quote_plus(in_reply_to_path)
                + "&template=" + urllib.parse.quote_plus(self.rel_path(template.path))
            )
            return self.fill_form_template(template.input_form_path, in_reply_to, submit_url, variables)

        display_form = params.get("display_form", "")
        if not display_form:
            raise ValueError("missing display_form tag in form XML")
        if not _has_ext(display_form):
            display_form += HTML_FILE_EXT
        path = files_map.get(display_form)
        if not path:
            raise FileNotFoundError(f"display form not found: {display_form!r}")
        return self.fill_form_template(path, in_reply_to, "", variables)

    def compose_template(
        self,
        template_path: str,
        subject: str,
        in_reply_to: Optional[OriginalMessage] = None,
    ) -> Message:
        """Compose a message from a template, prompting the user on the terminal."""
        template = read_template(template_path, form_files_from_path(self.config.forms_path))
        form_values = {
            "subjectline": subject,
            "templateversion": self.forms_version(),
        }
        print(f"Form '{self.rel_path(template.path)}', version: {form_values['templateversion']}")
        return self._builder(template, form_values, True, in_reply_to).build()

    # --- catalogue ---

    def _build_folder(self, root: str, files_map: FormFilesMap) -> FormFolder:
        folder = FormFolder(name=os.path.basename(os.path.normpath(root)), path=root)
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            full = os.path.join(root, entry.name)
            if entry.is_dir():
                sub = self._build_folder(full, files_map)
                folder.folders.append(sub)
                folder.form_count += sub.form_count
                continue
            if not entry.name.lower().endswith(TXT_FILE_EXT):
                continue
            try:
                template = read_template(full, files_map)
            except OSError as exc:
                debug.printf("failed to load form file %r: %s", full, exc)
                continue
            template.path = self.rel_path(template.path)
            if not template.input_form_path:
                continue
            folder.forms.append(template)
            folder.form_count += 1
        folder.folders.sort(key=lambda f: f.name)
        folder.forms.sort(key=lambda t: t.name)
        return folder

    def build_form_folder(self) -> FormFolder:
        """Return the tree of templates that have an HTML input form."""
        files_map = form_files_from_path(self.config.forms_path)
        folder = self._build_folder(self.config.forms_path, files_map)
        folder.version = self.forms_version()
        return folder

    # --- posted form data ---

    def post_form_data(
        self,
        key: str,
        template_path: str,
        fields: Mapping[str, str],
        in_reply_to: Optional[OriginalMessage] = None,
    ) -> Message:
        """Build a message from submitted form fields and keep it under key."""
        if not template_path:
            raise ValueError("template query param missing")
        path = self.abs_path(template_path)
        if not is_in_path(self.config.forms_path, path):
            raise PermissionError(f"{path} escapes forms directory")
        values = {k.lower().strip(): v for k, v in fields.items()}
        template = read_template(path, form_files_from_path(self.config.forms_path))
        msg = self._builder(template, values, False, in_reply_to).build()
        with self._lock:
            self._posted[key] = msg
        self.cleanup_old_form_data()
        return msg

    def posted_form_data(self, key: str) -> Optional[Message]:
        """Return the message posted under key, or None."""
        with self._lock:
            return self._posted.get(key)

    def cleanup_old_form_data(self) -> None:
        """Forget posted messages older than 24 hours."""
        now = self.now()
        with self._lock:
            for key, msg in list(self._posted.items()):
                if msg.submitted is None:
                    del self._posted[key]
                    continue
                elapsed = now - msg.submitted
                if elapsed > _MAX_FORM_DATA_AGE:
                    _log.info("deleting old FormData after %.1f hrs", elapsed.total_seconds() / 3600)
                    del self._posted[key]