import json
import os

import pytest

from stank_venv.environments import manifest as manifest_module
from stank_venv.environments.manifest import ManifestStore, atomic_write_json
from stank_venv.errors import PersistenceError
from stank_venv.types import EventType


class Clock:
    def __init__(self):
        self.tick = 0

    def __call__(self) -> str:
        self.tick += 1
        return f"2024-01-01 00:00:{self.tick:02d}"


@pytest.fixture
def store() -> ManifestStore:
    return ManifestStore(clock=Clock())


def test_missing_manifest_loads_as_none(store, environment):
    assert store.load(environment) is None
    assert not store.exists(environment)
    assert not store.is_set_installed(environment, "jupyter")


def test_initialize_is_idempotent(store, environment):
    first = store.initialize(environment)
    second = store.initialize(environment)

    assert first.created == second.created
    assert first.runtime_version == "3.11.9"
    assert first.installed_sets == []
    assert first.project_path is None


def test_manifest_json_layout(store, environment):
    store.initialize(environment)
    store.record_set_install(environment, "jupyter", 3, failed=1)

    data = json.loads(environment.manifest_path.read_text())
    assert set(data) == {
        "created",
        "updated",
        "runtime_version",
        "installed_sets",
        "installed_roles",
        "installed_packages",
        "project_path",
        "install_history",
    }
    assert data["install_history"] == [
        {"type": "set", "name": "jupyter", "count": 3, "date": "2024-01-01 00:00:02", "failed": 1}
    ]


def test_record_set_twice_lists_it_once(store, environment):
    store.initialize(environment)
    store.record_set_install(environment, "jupyter", 3)
    manifest = store.record_set_install(environment, "jupyter", 3)

    assert manifest.installed_sets == ["jupyter"]
    assert len(manifest.install_history) == 2
    assert store.is_set_installed(environment, "jupyter")


def test_record_role(store, environment):
    store.initialize(environment)
    manifest = store.record_role_install(environment, "data_scientist", 11)

    assert manifest.installed_roles == ["data_scientist"]
    assert manifest.install_history[-1].type == EventType.ROLE
    assert store.is_role_installed(environment, "data_scientist")


def test_record_packages_is_sorted_union(store, environment):
    store.initialize(environment)
    store.record_packages(environment, ["pandas", "numpy"])
    manifest = store.record_packages(environment, ["numpy", "matplotlib"])

    assert manifest.installed_packages == ["matplotlib", "numpy", "pandas"]


def test_updated_advances_on_record(store, environment):
    created = store.initialize(environment)
    manifest = store.record_set_install(environment, "jupyter", 3)

    assert manifest.created == created.created
    assert manifest.updated > created.updated


def test_link_project_overwrites(store, environment, tmp_path):
    store.initialize(environment)
    store.link_project(environment, tmp_path / "one")
    manifest = store.link_project(environment, tmp_path / "two")

    assert manifest.project_path == str(tmp_path / "two")


def test_legacy_python_version_key(store, environment):
    environment.manifest_path.write_text(
        json.dumps({"created": "x", "updated": "x", "python_version": "3.11.4", "installed_sets": ["jupyter"]})
    )
    manifest = store.load(environment)

    assert manifest.runtime_version == "3.11.4"
    assert manifest.installed_sets == ["jupyter"]
    assert manifest.install_history == []


def test_corrupt_manifest_raises(store, environment):
    environment.manifest_path.write_text("{oops")
    with pytest.raises(PersistenceError):
        store.load(environment)


def test_interrupted_write_keeps_previous_manifest(store, environment, monkeypatch):
    store.initialize(environment)
    store.record_set_install(environment, "jupyter", 3)
    before = environment.manifest_path.read_text()

    def crash(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(manifest_module.os, "replace", crash)

    with pytest.raises(PersistenceError):
        store.record_set_install(environment, "data_science", 5)

    assert environment.manifest_path.read_text() == before
    assert json.loads(before)["installed_sets"] == ["jupyter"]


def test_atomic_write_replaces_through_temp_file(tmp_path, monkeypatch):
    target = tmp_path / "state.json"
    replaced = []
    real_replace = os.replace

    def spy(src, dst):
        replaced.append((str(src), str(dst)))
        real_replace(src, dst)

    monkeypatch.setattr(manifest_module.os, "replace", spy)
    atomic_write_json(target, {"a": 1})

    assert replaced == [(str(target) + ".tmp", str(target))]
    assert json.loads(target.read_text()) == {"a": 1}
