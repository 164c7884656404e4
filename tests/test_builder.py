import io
from datetime import datetime, timedelta, timezone

import pytest

from patclient.forms.builder import (
    Attachment,
    Message,
    MessageBuilder,
    OriginalMessage,
    insertion_tag_replacer,
    variable_replacer,
    write_message_citation,
    xml_name,
)
from patclient.forms.sequence import open_sequence
from patclient.forms.settings import FormsConfig, GPSdConfig
from patclient.forms.template import Template

UTC_PLUS_1 = timezone(timedelta(hours=1), "UTC+1")
NOW = datetime(1988, 3, 21, 0, 0, 0, tzinfo=UTC_PLUS_1).astimezone(timezone.utc)


def _no_internet():
    return False


def _fixed_now():
    return NOW


INSERTION_CASES = {
    "<ProgramVersion>": "Pat v1.0.0 (test)",
    "<Callsign>": "LA5NTA",
    "<MsgSender>": "LA5NTA",
    "<DateTime>": "1988-03-21 00:00:00",
    "<UDateTime>": "1988-03-20 23:00:00Z",
    "<Date>": "1988-03-21",
    "<UDate>": "1988-03-20Z",
    "<UDTG>": "202300Z MAR 1988",
    "<Time>": "00:00:00",
    "<UTime>": "23:00:00Z",
    "<Day>": "Monday",
    "<UDay>": "Sunday",
    "<GPS>": "59-24.83N 005-16.08E",
    "<GPS_DECIMAL>": "59.4138N 5.2680E",
    "<GPS_SIGNED_DECIMAL>": "59.4138 5.2680",
    "<GridSquare>": "JO29PJ",
    "<Latitude>": "59.4138",
    "<Longitude>": "5.2680",
    "<GPSValid>": "YES",
    "<GPSLatitude>": "59.4138",
    "<GPSLongitude>": "5.2680",
}


@pytest.mark.parametrize("tag,expected", sorted(INSERTION_CASES.items()))
def test_insertion_tag_replacer(tag, expected):
    config = FormsConfig(
        my_call="LA5NTA",
        app_version="Pat v1.0.0 (test)",
        gpsd=GPSdConfig(addr="mock"),
    )
    replace = insertion_tag_replacer(
        config, None, None, "<", ">", NOW, UTC_PLUS_1, _no_internet
    )
    assert replace(tag) == expected


def test_insertion_tags_without_gps_and_reply():
    config = FormsConfig(my_call="LA5NTA")
    replace = insertion_tag_replacer(config, None, None, "<", ">", NOW, UTC_PLUS_1, _no_internet)
    assert replace("<GPSValid>/<GPS>/<MsgIsReply>/<SeqNum>/<InternetAvailable>") == (
        "NO/(Not available)/False/000/NO"
    )


def test_insertion_tags_for_reply():
    original = OriginalMessage(
        mid="ABC123",
        subject="Status",
        sender="N0CALL",
        date=datetime(2024, 1, 1, 3, 59, 59, tzinfo=timezone.utc),
        body="hello",
        files=[Attachment("RMS_Express_Form_x.xml", b"<xml/>")],
    )
    replace = insertion_tag_replacer(
        FormsConfig(), None, original, "{", "}", NOW, timezone.utc, _no_internet
    )
    out = replace("{MsgIsReply} {MsgOriginalSender} {MsgOriginalID} {MsgOriginalDTG} "
                  "{MsgOriginalSize} {MsgOriginalAttachmentCount} {MsgOriginalXML}")
    assert out == "True N0CALL ABC123 010359Z JAN 2024 5 1 <xml/>"


def _xml_lines(data: bytes):
    return [line.strip() for line in data.decode("utf-8").splitlines() if line.strip()]


def test_build_xml():
    builder = MessageBuilder(
        template=Template(name="t", path="t.txt", display_form_path="viewer.html",
                          reply_template_path="reply.txt"),
        config=FormsConfig(my_call="LA5NTA", app_version="v1.0.0", locator="JO29PJ",
                           gpsd=GPSdConfig(addr="mock")),
        form_values={"var1": "foo", "var2": "bar", "var3": "  baz \t\n"},
        now=_fixed_now,
        tz=UTC_PLUS_1,
        internet_check=_no_internet,
    )
    expected = """
        <?xml version="1.0" encoding="UTF-8"?>
        <RMS_Express_Form>
          <form_parameters>
            <xml_file_version>1.0</xml_file_version>
            <rms_express_version>v1.0.0</rms_express_version>
            <submission_datetime>19880320230000</submission_datetime>
            <senders_callsign>LA5NTA</senders_callsign>
            <grid_square>JO29PJ</grid_square>
            <display_form>viewer.html</display_form>
            <reply_template>reply.txt</reply_template>
          </form_parameters>
          <variables>
            <var1>foo</var1>
            <var2>bar</var2>
            <var3>baz</var3>
          </variables>
        </RMS_Express_Form>
    """.encode("utf-8")
    assert _xml_lines(builder.build_xml()) == _xml_lines(expected)


def test_build_xml_escapes_and_omits_empty_variables():
    builder = MessageBuilder(template=Template(name="t", path="t.txt"), config=FormsConfig(),
                             now=_fixed_now)
    lines = _xml_lines(builder.build_xml())
    assert "<variables>" not in lines
    assert "<display_form></display_form>" in lines
    builder.form_values["note"] = "a<b&c"
    assert "<note>a&lt;b&amp;c</note>" in _xml_lines(builder.build_xml())


def test_xml_name():
    assert xml_name(Template(name="x", path="x.txt", display_form_path="/f/viewer.html")) == (
        "RMS_Express_Form_viewer.xml"
    )
    long_name = "v" * 250
    assert xml_name(Template(name="x", path="x.txt",
                             display_form_path=f"/f/{long_name}.html")) == long_name + ".xml"


def test_build_attachments_from_form_values():
    builder = MessageBuilder(
        template=Template(name="t", path="t.txt"),
        config=FormsConfig(),
        form_values={"attached_text": "data", "attached_file": "notes.txt",
                     "attached_text1": "  ", "attached_text2": "more"},
    )
    attachments = builder.build_attachments()
    assert attachments == [Attachment("notes.txt", b"data"), Attachment("FormData.txt", b"more")]
    assert builder.form_values == {"attached_text1": "  "}


def test_variable_replacer():
    replace = variable_replacer("<", ">", {"name": "World"})
    assert replace("Hello <var   NAME>!") == "Hello World!"


def test_write_message_citation():
    out = io.StringIO()
    msg = OriginalMessage(sender="N0CALL", date=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
                          body="line1\r\nline2\n")
    write_message_citation(out, msg)
    assert out.getvalue() == "--- 2024-01-01 12:00:00 +0000 UTC N0CALL wrote: ---\n>line1\n>line2\n"


def _builder(path, **kwargs):
    kwargs.setdefault("config", FormsConfig(my_call="LA5NTA"))
    return MessageBuilder(
        template=Template(name="t", path=str(path)),
        now=_fixed_now,
        tz=UTC_PLUS_1,
        internet_check=_no_internet,
        **kwargs,
    )


def test_build_from_template(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text(
        "\ufeffSubject: Hello <Callsign>\n"
        "To: someone@example.com\n"
        "cc: other@example.com\n"
        "Def: myvar = World\n"
        "Msg:\n"
        "Hi <Var myvar>\n"
        "Subject: not a field\n",
        encoding="utf-8",
    )
    builder = _builder(path)
    msg = builder.build()
    assert isinstance(msg, Message)
    assert msg.subject == "Hello LA5NTA"
    assert msg.to == "someone@example.com"
    assert msg.cc == "other@example.com"
    assert msg.body == "Hi World\nSubject: not a field\n"
    assert msg.attachments == []
    assert msg.submitted == NOW
    assert builder.form_values["msgisreply"] == "False"
    assert builder.form_values["msgsender"] == "LA5NTA"
    assert builder.form_values["myvar"] == "World"


def test_seqinc_updates_sequence_number(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text("Seqinc:\nSubject: <SeqNum>\n", encoding="utf-8")
    seq = open_sequence(str(tmp_path / "seq.json"))
    try:
        msg = _builder(path, sequence=seq).build()
        assert msg.subject == "001"
        assert seq.load() == 1
    finally:
        seq.close()


def test_seqset_without_sequence_raises(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text("Seqset: 5\n", encoding="utf-8")
    with pytest.raises(RuntimeError):
        _builder(path).build()


def test_interactive_ask(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text("Subject: <Ask Your name,UP>\n", encoding="utf-8")
    config = FormsConfig(my_call="LA5NTA", line_reader=lambda: "bob")
    msg = _builder(path, config=config, interactive=True).build()
    assert msg.subject == "BOB"


def test_reply_appends_citation(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text("Msg:\nThanks\n", encoding="utf-8")
    original = OriginalMessage(sender="N0CALL", body="line1\nline2",
                               date=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
    builder = _builder(path, in_reply_to=original)
    msg = builder.build()
    assert msg.body == (
        "Thanks\n--- 2024-01-01 12:00:00 +0000 UTC N0CALL wrote: ---\n>line1\n>line2\n"
    )
    assert builder.form_values["msgisreply"] == "True"
    assert builder.form_values["msgoriginalbody"] == "line1\nline2"


def test_display_form_adds_xml_attachment(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text("Subject: s\n", encoding="utf-8")
    builder = MessageBuilder(
        template=Template(name="t", path=str(path), display_form_path=str(tmp_path / "view.html")),
        config=FormsConfig(my_call="LA5NTA"),
        now=_fixed_now,
        internet_check=_no_internet,
    )
    msg = builder.build()
    assert [a.name for a in msg.attachments] == ["RMS_Express_Form_view.xml"]
    assert "<msgsender>LA5NTA</msgsender>" in _xml_lines(msg.attachments[0].data)