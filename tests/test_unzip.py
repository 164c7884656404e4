import zipfile

import pytest

from patclient.forms.unzip import unzip


def _make_zip(path, entries):
    with zipfile.ZipFile(path, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return str(path)


def test_unzip_extracts_nested_files(tmp_path):
    src = _make_zip(
        tmp_path / "forms.zip",
        {"Standard_Forms_Version.dat": b"1.1.6.0", "ICS/ICS213.txt": b"Form: a.html\n"},
    )
    out = tmp_path / "out"
    unzip(src, str(out))
    assert (out / "Standard_Forms_Version.dat").read_bytes() == b"1.1.6.0"
    assert (out / "ICS" / "ICS213.txt").read_bytes() == b"Form: a.html\n"


def test_unzip_skips_directory_entries(tmp_path):
    src = tmp_path / "dirs.zip"
    with zipfile.ZipFile(src, "w") as archive:
        archive.writestr("empty/", b"")
        archive.writestr("full/f.txt", b"data")
    out = tmp_path / "out"
    unzip(str(src), str(out))
    assert not (out / "empty").exists()
    assert (out / "full" / "f.txt").read_bytes() == b"data"


def test_unzip_overwrites_existing_file(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    (out / "a.txt").write_bytes(b"old and longer content")
    src = _make_zip(tmp_path / "a.zip", {"a.txt": b"new"})
    unzip(src, str(out))
    assert (out / "a.txt").read_bytes() == b"new"


def test_unzip_rejects_path_traversal(tmp_path):
    src = _make_zip(tmp_path / "evil.zip", {"../evil.txt": b"boom"})
    out = tmp_path / "out"
    with pytest.raises(ValueError, match="illegal file path"):
        unzip(src, str(out))
    assert not (tmp_path / "evil.txt").exists()


def test_unzip_missing_archive(tmp_path):
    with pytest.raises(FileNotFoundError):
        unzip(str(tmp_path / "missing.zip"), str(tmp_path / "out"))


def test_unzip_not_a_zip(tmp_path):
    bad = tmp_path / "bad.zip"
    bad.write_bytes(b"not a zip archive")
    with pytest.raises(zipfile.BadZipFile):
        unzip(str(bad), str(tmp_path / "out"))