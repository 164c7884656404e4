import os

import pytest

from patclient import directories


def test_is_in_path_cases(tmp_path):
    parent = str(tmp_path / "a" / "b")
    assert directories.is_in_path(parent, os.path.join(parent, "c"))
    assert directories.is_in_path(parent, parent)
    assert not directories.is_in_path(parent, str(tmp_path / "a" / "bc"))
    assert not directories.is_in_path(parent, str(tmp_path / "a"))
    assert not directories.is_in_path(parent, os.path.join(parent, "..", "x"))


def test_is_in_path_relative():
    assert directories.is_in_path("forms", os.path.join("forms", "x.txt"))
    assert not directories.is_in_path("forms", os.path.join("forms", "..", "x.txt"))


def test_is_in_path_rejects_mixed(tmp_path):
    with pytest.raises(ValueError):
        directories.is_in_path(str(tmp_path), "relative")


def test_dirs_follow_xdg_env(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    assert directories.data_dir() == str(tmp_path / "data" / "pat")
    assert directories.config_dir() == str(tmp_path / "config" / "pat")
    assert directories.state_dir() == str(tmp_path / "state" / "pat")
    assert os.path.isdir(tmp_path / "state" / "pat")


def test_migrate_file_moves(tmp_path):
    src, dst = tmp_path / "src", tmp_path / "dst"
    src.mkdir()
    dst.mkdir()
    (src / "config.json").write_text("{}")
    directories.migrate_file("config.json", str(src), str(dst))
    assert (dst / "config.json").read_text() == "{}"
    assert not (src / "config.json").exists()


def test_migrate_file_does_not_clobber(tmp_path):
    src, dst = tmp_path / "src", tmp_path / "dst"
    src.mkdir()
    dst.mkdir()
    (src / "config.json").write_text("old")
    (dst / "config.json").write_text("new")
    directories.migrate_file("config.json", str(src), str(dst))
    assert (dst / "config.json").read_text() == "new"
    assert (src / "config.json").read_text() == "old"


def test_migrate_file_missing_source(tmp_path):
    directories.migrate_file("nothing", str(tmp_path), str(tmp_path / "dst"))
    assert not (tmp_path / "dst").exists()


def test_migrate_legacy_data_dir(monkeypatch, tmp_path):
    home = tmp_path / "home"
    legacy = home / ".wl2k"
    (legacy / "mailbox").mkdir(parents=True)
    (legacy / "config.json").write_text("cfg")
    (legacy / "rmslist-PUBLIC.json").write_text("list")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))

    directories.migrate_legacy_data_dir()

    config_dir = directories.config_dir()
    data_dir = directories.data_dir()
    assert config_dir == str(tmp_path / "config" / "pat")
    assert data_dir == str(tmp_path / "data" / "pat")
    with open(os.path.join(config_dir, "config.json")) as f:
        assert f.read() == "cfg"
    assert os.path.isdir(os.path.join(data_dir, "mailbox"))
    with open(os.path.join(data_dir, "rmslist-PUBLIC.json")) as f:
        assert f.read() == "list"
    assert not legacy.exists()
    assert (home / ".wl2k-old").is_dir()