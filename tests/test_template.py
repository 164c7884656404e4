import os

import pytest

from patclient.forms.template import (
    FormFilesMap,
    Template,
    form_files_from_path,
    read_template,
    resolve_file_reference,
)


def _write(path, text=""):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_form_files_from_path_collects_forms_and_reply_templates(tmp_path):
    a = _write(tmp_path / "a.html")
    b = _write(tmp_path / "sub" / "B.HTML")
    c = _write(tmp_path / "c.0")
    _write(tmp_path / "d.txt")
    files_map = form_files_from_path(str(tmp_path))
    assert files_map.files == {"a.html": str(a), "b.html": str(b), "c.0": str(c)}


def test_form_files_from_path_last_duplicate_wins(tmp_path):
    _write(tmp_path / "x" / "dup.html")
    last = _write(tmp_path / "y" / "dup.html")
    assert form_files_from_path(str(tmp_path)).get("dup.html") == str(last)


def test_form_files_from_missing_path_is_empty(tmp_path):
    assert form_files_from_path(str(tmp_path / "nope")).files == {}


def test_form_files_map_get():
    files_map = FormFilesMap({"form.html": "/f/form.html", "reply.0": "/f/reply.0"})
    assert files_map.get("FORM.HTML") == "/f/form.html"
    assert files_map.get("form") == "/f/form.html"
    assert files_map.get("Reply") == "/f/reply.0"
    assert files_map.get("form.txt") is None
    assert files_map.get("missing") is None


def test_read_template_resolves_references(tmp_path):
    folder = tmp_path / "ICS USA Forms"
    path = _write(
        folder / "ICS213.txt",
        "Form: ICS213_Initial.html, ICS213_Viewer.html\nReplyTemplate: ICS213_Reply\nSubj: x\n",
    )
    initial = _write(folder / "ICS213_Initial.html")
    viewer = _write(folder / "ICS213_Viewer.html")
    reply = _write(folder / "ICS213_Reply.0")

    template = read_template(str(path), form_files_from_path(str(tmp_path)))
    assert template == Template(
        name="ICS213",
        path=str(path),
        input_form_path=str(initial),
        display_form_path=str(viewer),
        reply_template_path=str(reply),
    )


def test_read_template_with_bom_and_no_display_form(tmp_path):
    path = tmp_path / "t.txt"
    path.write_bytes(b"\xef\xbb\xbfForm: in.html\n")
    form = _write(tmp_path / "in.html")
    template = read_template(str(path), FormFilesMap())
    assert template.input_form_path == str(form)
    assert template.display_form_path == ""
    assert template.reply_template_path == ""


def test_read_template_unresolved_reference_is_empty(tmp_path):
    path = _write(tmp_path / "t.txt", "Form: nowhere.html\n")
    template = read_template(str(path), FormFilesMap())
    assert template.input_form_path == ""
    assert template.name == "t"


def test_read_template_missing_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_template(str(tmp_path / "missing.txt"), FormFilesMap())


def test_resolve_existing_file(tmp_path):
    target = _write(tmp_path / "form.html")
    assert resolve_file_reference(FormFilesMap(), str(tmp_path), "form.html") == str(target)


def test_resolve_guesses_extension(tmp_path):
    target = _write(tmp_path / "reply.0")
    assert resolve_file_reference(FormFilesMap(), str(tmp_path), "reply") == str(target)


def test_resolve_rejects_escaping_reference(tmp_path):
    base = tmp_path / "base"
    base.mkdir()
    _write(tmp_path / "outside.html")
    assert resolve_file_reference(FormFilesMap(), str(base), "../outside.html") is None


def test_resolve_falls_back_to_map(tmp_path):
    base = tmp_path / "base"
    base.mkdir()
    other = _write(tmp_path / "other" / "Shared.html")
    files_map = form_files_from_path(str(tmp_path))
    assert resolve_file_reference(files_map, str(base), "shared.html") == str(other)
    assert os.path.exists(resolve_file_reference(files_map, str(base), "shared"))