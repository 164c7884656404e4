"""Building concrete messages from Winlink templates."""

import io
import logging
import os
import re
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Callable, Mapping, Optional, TextIO

from patclient import debug, editor
from patclient.forms.dates import (
    format_date,
    format_date_time,
    format_date_time_utc,
    format_date_utc,
    format_day,
    format_time,
    format_time_utc,
    format_udtg,
)
from patclient.forms.fileio import read_lines
from patclient.forms.placeholder import placeholder_replacer
from patclient.forms.position import GPSStyle, position_fmt
from patclient.forms.prompt import Ask, Option, Select, prompt_asks, prompt_selects, prompt_vars
from patclient.forms.sequence import Sequence
from patclient.forms.settings import FormsConfig, gps_position
from patclient.forms.template import Template
from patclient.gpsd import Position

_log = logging.getLogger(__name__)

XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n'
_XML_INDENT = "    "
_XML_PREFIX = "RMS_Express_Form_"
_TOKEN_CHARS = set(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789!#$%&'*+-.^_`|~"
)
_XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&#34;",
    "'": "&#39;",
    "\t": "&#x9;",
    "\n": "&#xA;",
    "\r": "&#xD;",
}
_XML_ESCAPE_RE = re.compile("[&<>\"'\t\n\r]")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Attachment:
    """A named file attached to a message."""

    name: str
    data: bytes


@dataclass
class OriginalMessage:
    """The message being replied to."""

    mid: str = ""
    subject: str = ""
    sender: str = ""
    date: datetime = field(default_factory=_utc_now)
    body: str = ""
    files: list[Attachment] = field(default_factory=list)

    @property
    def body_size(self) -> int:
        """Size of the body in bytes."""
        return len(self.body.encode("utf-8"))


@dataclass
class Message:
    """A concrete message compiled from a template."""

    to: str = ""
    cc: str = ""
    subject: str = ""
    body: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    submitted: Optional[datetime] = None

    def as_dict(self) -> dict[str, str]:
        """Return the JSON representation used by the web GUI."""
        return {
            "msg_to": self.to,
            "msg_cc": self.cc,
            "msg_subject": self.subject,
            "msg_body": self.body,
        }


def is_internet_available() -> bool:
    """Return True if a well known web site answers within five seconds."""
    req = urllib.request.Request("https://www.google.com", method="HEAD")
    try:
        with urllib.request.urlopen(req, timeout=5) as resp:
            resp.read()
    except urllib.error.HTTPError:
        debug.printf("Internet available: True")
        return True
    except Exception as exc:  # any failure means no connectivity
        debug.printf("Internet available: False (%s)", exc)
        return False
    debug.printf("Internet available: True")
    return True


def variable_replacer(tag_start: str, tag_end: str, variables: Mapping[str, str]) -> Callable[[str], str]:
    """Return a function replacing <Var key> style placeholders."""
    return placeholder_replacer(tag_start + "Var ", tag_end, variables)


def _title_bool(value: bool) -> str:
    return "True" if value else "False"


def insertion_tag_replacer(
    config: FormsConfig,
    sequence: Optional[Sequence] = None,
    in_reply_to: Optional[OriginalMessage] = None,
    tag_start: str = "<",
    tag_end: str = ">",
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    internet_check: Optional[Callable[[], bool]] = None,
) -> Callable[[str], str]:
    """Return a function replacing the fixed set of insertion tags."""
    if now is None:
        now = _utc_now()
    if internet_check is None:
        internet_check = is_internet_available

    valid_pos = "NO"
    try:
        pos = gps_position(config.gpsd)
    except Exception as exc:  # position is optional for templates
        debug.printf("GPSd error: %s", exc)
        pos = Position()
    else:
        valid_pos = "YES"
        debug.printf("GPSd position: %s", position_fmt(GPSStyle.SIGNED_DECIMAL, pos))

    internet = "YES" if internet_check() else "NO"

    seq_num = 0
    if sequence is None:
        debug.printf("Error loading sequence number: no sequence")
    else:
        try:
            seq_num = sequence.load()
        except (OSError, ValueError) as exc:
            debug.printf("Error loading sequence number: %s", exc)

    tags = {
        "MsgSender": config.my_call,
        "Callsign": config.my_call,
        "ProgramVersion": config.app_version,
        "DateTime": format_date_time(now, tz),
        "UDateTime": format_date_time_utc(now),
        "Date": format_date(now, tz),
        "UDate": format_date_utc(now),
        "UDTG": format_udtg(now),
        "Time": format_time(now, tz),
        "UTime": format_time_utc(now),
        "Day": format_day(now, tz),
        "UDay": format_day(now, timezone.utc),
        "GPS": position_fmt(GPSStyle.DEGREE_MINUTE, pos),
        "GPSValid": valid_pos,
        "GPS_DECIMAL": position_fmt(GPSStyle.DECIMAL, pos),
        "GPS_SIGNED_DECIMAL": position_fmt(GPSStyle.SIGNED_DECIMAL, pos),
        "GridSquare": position_fmt(GPSStyle.GRID_SQUARE, pos),
        "Latitude": f"{pos.lat:.4f}",
        "Longitude": f"{pos.lon:.4f}",
        "GPSLatitude": f"{pos.lat:.4f}",
        "GPSLongitude": f"{pos.lon:.4f}",
        "InternetAvailable": internet,
        "MsgIsReply": _title_bool(in_reply_to is not None),
        "MsgIsForward": "False",
        "MsgIsAcknowledgement": "False",
        "SeqNum": config.sequence_format % seq_num,
    }
    if in_reply_to is not None:
        date = in_reply_to.date
        tags.update({
            "MsgOriginalSubject": in_reply_to.subject,
            "MsgOriginalSender": in_reply_to.sender,
            "MsgOriginalBody": in_reply_to.body,
            "MsgOriginalID": in_reply_to.mid,
            "MsgOriginalDate": format_date_time(date, tz),
            "MsgOriginalUtcDate": format_date_utc(date),
            "MsgOriginalUtcTime": format_time_utc(date),
            "MsgOriginalLocalDate": format_date(date, tz),
            "MsgOriginalLocalTime": format_time(date, tz),
            "MsgOriginalDTG": format_udtg(date),
            "MsgOriginalSize": str(in_reply_to.body_size),
            "MsgOriginalAttachmentCount": str(len(in_reply_to.files)),
        })
        for f in in_reply_to.files:
            if f.name.startswith(_XML_PREFIX) and f.name.endswith(".xml"):
                tags["MsgOriginalXML"] = f.data.decode("utf-8", errors="replace")

    return placeholder_replacer(tag_start, tag_end, tags)


def _file_ext(name: str) -> str:
    idx = name.rfind(".")
    return name[idx:] if idx >= 0 else ""


def xml_name(template: Template) -> str:
    """Return the attachment name of the XML holding a form's values."""
    base = os.path.basename(template.display_form_path) if template.display_form_path else "."
    ext = _file_ext(base)
    if ext:
        base = base[: -len(ext)]
    name = _XML_PREFIX + base + ".xml"
    if len(name) > 255:
        name = name[len(_XML_PREFIX):]
    return name


def _go_time_string(t: datetime) -> str:
    if t.tzinfo is None:
        t = t.astimezone()
    text = t.strftime("%Y-%m-%d %H:%M:%S")
    if t.microsecond:
        text += ("." + f"{t.microsecond:06d}").rstrip("0")
    offset = t.strftime("%z")
    zone = t.tzname() or offset
    if zone.startswith("UTC") and zone != "UTC":
        zone = offset
    return f"{text} {offset} {zone}"


def write_message_citation(out: TextIO, msg: OriginalMessage) -> None:
    """Write the quoted body of msg, headed by its date and sender."""
    out.write(f"--- {_go_time_string(msg.date)} {msg.sender} wrote: ---\n")
    lines = msg.body.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    for line in lines:
        if line.endswith("\r"):
            line = line[:-1]
        out.write(f">{line}\n")


def _canonical_key(key: str) -> str:
    if not key or any(ch not in _TOKEN_CHARS for ch in key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


def _xml_escape(text: str) -> str:
    return _XML_ESCAPE_RE.sub(lambda m: _XML_ESCAPES[m.group(0)], text)


def _parse_int(value: str, what: str) -> int:
    try:
        return int(value, 10)
    except ValueError:
        _log.warning("WARNING: failed to parse %s value (%r)", what, value)
        return 0


@dataclass
class MessageBuilder:
    """Compiles a template and form values into a Message."""

    template: Template
    config: FormsConfig
    form_values: dict[str, str] = field(default_factory=dict)
    sequence: Optional[Sequence] = None
    interactive: bool = False
    in_reply_to: Optional[OriginalMessage] = None
    now: Callable[[], datetime] = _utc_now
    tz: Optional[tzinfo] = None
    internet_check: Callable[[], bool] = is_internet_available

    def build(self) -> Message:
        """Return the message with subject, body and attachments."""
        self._set_default_form_values()
        msg = self.scan_and_build(self.template.path)
        msg.attachments = self.build_attachments()
        return msg

    def _set_default_form_values(self) -> None:
        values = self.form_values
        if self.in_reply_to is not None:
            values["msgisreply"] = "True"
            values.setdefault("msgoriginalbody", self.in_reply_to.body)
        else:
            values["msgisreply"] = "False"
        values.setdefault("msgsender", self.config.my_call)
        for key in ("msgto", "msgcc", "msgsubject", "msgbody", "msgp2p", "txtstr"):
            values.setdefault(key, "")
        for key in ("msgisforward", "msgisacknowledgement"):
            values.setdefault(key, "False")
        values.setdefault("msgseqnum", "0")

    def build_xml(self) -> bytes:
        """Return the RMS Express form XML holding the form values."""

        def filename(path: str) -> str:
            return os.path.basename(path) if path else ""

        params = [
            ("xml_file_version", "1.0"),
            ("rms_express_version", self.config.app_version),
            ("submission_datetime", self.now().astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")),
            ("senders_callsign", self.config.my_call),
            ("grid_square", self.config.locator),
            ("display_form", filename(self.template.display_form_path)),
            ("reply_template", filename(self.template.reply_template_path)),
        ]
        variables = sorted((k, v.strip()) for k, v in self.form_values.items())

        def element(depth: int, name: str, value: str) -> str:
            return f"{_XML_INDENT * depth}<{name}>{_xml_escape(value)}</{name}>"

        lines = ["<RMS_Express_Form>", f"{_XML_INDENT}<form_parameters>"]
        lines += [element(2, k, v) for k, v in params]
        lines.append(f"{_XML_INDENT}</form_parameters>")
        if variables:
            lines.append(f"{_XML_INDENT}<variables>")
            lines += [element(2, k, v) for k, v in variables]
            lines.append(f"{_XML_INDENT}</variables>")
        lines.append("</RMS_Express_Form>")
        return (XML_HEADER + "\n".join(lines)).encode("utf-8")

    def build_attachments(self) -> list[Attachment]:
        """Return text attachments defined by form values, plus the form XML."""
        attachments = []
        for key in sorted(k for k in self.form_values if k.startswith("attached_text")):
            text = self.form_values[key]
            if text.strip() == "":
                debug.printf("Ignoring empty text attachment %r: %r", key, text)
                continue
            name_key = key.replace("attached_text", "attached_file", 1)
            name = self.form_values.get(name_key, "").strip()
            if not name:
                debug.printf("%s defined, but corresponding filename element %r is not set", key, name_key)
                name = "FormData.txt"
            attachments.append(Attachment(name, text.encode("utf-8")))
            self.form_values.pop(name_key, None)
            self.form_values.pop(key, None)
        if self.template.display_form_path:
            attachments.append(Attachment(xml_name(self.template), self.build_xml()))
        return attachments

    def _tag_replacer(self) -> Callable[[str], str]:
        return insertion_tag_replacer(
            self.config, self.sequence, self.in_reply_to, "<", ">",
            self.now(), self.tz, self.internet_check,
        )

    def _require_sequence(self) -> Sequence:
        if self.sequence is None:
            raise RuntimeError("sequence not available")
        return self.sequence

    def _ask(self, ask: Ask) -> str:
        if ask.multiline:
            print(ask.prompt + " (Press ENTER to start external editor)")
            self.config.line_reader()
            answer = editor.edit_text("")
        else:
            print(ask.prompt + " ", end="", flush=True)
            answer = self.config.line_reader()
        return answer.upper() if ask.uppercase else answer

    def _select(self, select: Select) -> Option:
        while True:
            print(select.prompt)
            for idx, opt in enumerate(select.options):
                print(f"  {idx}\t{opt.item}")
            print(f"select 0-{len(select.options) - 1}: ", end="", flush=True)
            try:
                idx = int(self.config.line_reader().strip())
            except ValueError:
                continue
            if 0 <= idx < len(select.options):
                return select.options[idx]

    def scan_and_build(self, path: str) -> Message:
        """Scan the template at path, substitute placeholders and build the message.

        In interactive mode the user is prompted for undefined placeholders.
        """
        lines = read_lines(path)
        replace_tags = self._tag_replacer()
        replace_vars = variable_replacer("<", ">", self.form_values)

        def add_form_value(key: str, value: str) -> None:
            nonlocal replace_vars
            self.form_values[key.lower()] = value
            replace_vars = variable_replacer("<", ">", self.form_values)
            debug.printf("Defined %r=%r", key, value)

        msg = Message(submitted=self.now())
        in_body = False
        for line in lines:
            line = replace_vars(replace_tags(line))

            if self.interactive:
                line = prompt_asks(line, self._ask)
                line = prompt_selects(line, self._select)
                current = line

                def ask_var(key: str) -> str:
                    print(current)
                    print(f"{key}: ", end="", flush=True)
                    value = self.config.line_reader()
                    add_form_value(key, value)
                    return value

                line = prompt_vars(line, ask_var)

            if in_body:
                msg.body += line + "\n"
                continue

            key, _, value = line.partition(":")
            key = _canonical_key(key)
            if key == "Msg":
                msg.body += value
                in_body = True
            elif key in ("Form", "ReplyTemplate", "Readonly"):
                continue
            elif key in ("Def", "Define"):
                name, sep, val = value.partition("=")
                if not sep:
                    debug.printf("Def: without key-value pair: %r", value)
                    continue
                add_form_value(name.strip(), val.strip())
            elif key in ("Subject", "Subj"):
                msg.subject = value.strip()
            elif key == "To":
                msg.to = value.strip()
            elif key == "Cc":
                msg.cc = value.strip()
            elif key == "Seqinc":
                value = value.strip() or "1"
                self._require_sequence().incr(_parse_int(value, "Seqinc"))
                replace_tags = self._tag_replacer()
            elif key == "Seqset":
                value = value.strip()
                self._require_sequence().set(_parse_int(value, "Seqset"))
                replace_tags = self._tag_replacer()
            elif line.strip():
                _log.info("skipping unknown template line: %r", line)

        if self.in_reply_to is not None:
            buf = io.StringIO()
            buf.write(msg.body)
            write_message_citation(buf, self.in_reply_to)
            msg.body = buf.getvalue()
        return msg