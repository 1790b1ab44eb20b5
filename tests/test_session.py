import json
from pathlib import Path

import pytest

from stank_venv.environments import manifest as manifest_module
from stank_venv.environments.session import load_session, save_session
from stank_venv.errors import PersistenceError


def test_save_and_load(tmp_path: Path):
    path = tmp_path / "state" / ".last-session.json"

    saved = save_session(path, "demo", tmp_path / "work")
    loaded = load_session(path)

    assert loaded == saved
    assert loaded.env_name == "demo"
    assert loaded.work_dir == str(tmp_path / "work")
    assert set(json.loads(path.read_text())) == {"env_name", "work_dir", "date"}


def test_save_overwrites_single_record(tmp_path: Path):
    path = tmp_path / "session.json"
    save_session(path, "first", tmp_path)
    save_session(path, "second", tmp_path)

    assert load_session(path).env_name == "second"


def test_missing_or_corrupt_session_is_none(tmp_path: Path):
    path = tmp_path / "session.json"
    assert load_session(path) is None

    path.write_text("[1, 2")
    assert load_session(path) is None

    path.write_text(json.dumps({"work_dir": "/tmp"}))
    assert load_session(path) is None


def test_write_failure_raises_persistence_error(tmp_path: Path, monkeypatch):
    def crash(src, dst):
        raise OSError("read-only")

    monkeypatch.setattr(manifest_module.os, "replace", crash)

    with pytest.raises(PersistenceError):
        save_session(tmp_path / "session.json", "demo", tmp_path)
