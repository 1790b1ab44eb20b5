"""Per-environment install manifest.

The manifest lives at ``<env>/stank-manifest.json`` and is the only record
used for idempotency checks. Every update rewrites the whole document:
read, mutate in memory, write ``<manifest>.tmp``, then ``os.replace`` it
over the existing file. Readers therefore see either the old or the new
document, never a partial one.

Entries in ``installed_sets``, ``installed_roles`` and
``installed_packages`` are only ever added. Only one installer session
may write a given environment's manifest at a time; concurrent writers
from several processes are not supported.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from stank_venv.errors import PersistenceError
from stank_venv.logging import get_logger
from stank_venv.types import Environment, EventType, InstallEvent, Manifest

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def atomic_write_json(path: Path, data: dict) -> None:
    """Write JSON to ``path`` through a temporary file and rename."""
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        raise PersistenceError(f"Could not write {path}: {e}", path=path) from e


def _append_unique(items: list, value: str) -> None:
    if value not in items:
        items.append(value)


class ManifestStore:
    """Reads and updates environment manifests."""

    def __init__(self, clock: Callable[[], str] = timestamp):
        self._clock = clock

    def exists(self, environment: Environment) -> bool:
        return environment.manifest_path.exists()

    def load(self, environment: Environment) -> Optional[Manifest]:
        """Return the manifest, or None when the environment has none yet."""
        path = environment.manifest_path
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read manifest {path}: {e}", path=path) from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Manifest {path} is not an object", path=path)
        return Manifest.from_dict(data)

    def _save(self, environment: Environment, manifest: Manifest) -> None:
        atomic_write_json(environment.manifest_path, manifest.to_dict())

    def _new_manifest(self, environment: Environment) -> Manifest:
        now = self._clock()
        return Manifest(created=now, updated=now, runtime_version=environment.runtime_version)

    def initialize(self, environment: Environment) -> Manifest:
        """Create the manifest if it does not exist yet."""
        manifest = self.load(environment)
        if manifest is not None:
            return manifest
        manifest = self._new_manifest(environment)
        self._save(environment, manifest)
        logger.info("manifest_initialized", env=environment.name, path=str(environment.manifest_path))
        return manifest

    def _update(self, environment: Environment, mutate: Callable[[Manifest], None]) -> Manifest:
        manifest = self.load(environment) or self._new_manifest(environment)
        mutate(manifest)
        self._save(environment, manifest)
        return manifest

    def is_set_installed(self, environment: Environment, set_id: str) -> bool:
        manifest = self.load(environment)
        return manifest is not None and set_id in manifest.installed_sets

    def is_role_installed(self, environment: Environment, role_id: str) -> bool:
        manifest = self.load(environment)
        return manifest is not None and role_id in manifest.installed_roles

    def _record(
        self,
        environment: Environment,
        event_type: EventType,
        name: str,
        count: int,
        failed: int = 0,
    ) -> Manifest:
        def mutate(manifest: Manifest) -> None:
            now = self._clock()
            manifest.updated = now
            target = manifest.installed_sets if event_type == EventType.SET else manifest.installed_roles
            _append_unique(target, name)
            manifest.install_history.append(
                InstallEvent(type=event_type, name=name, count=count, date=now, failed=failed)
            )

        manifest = self._update(environment, mutate)
        logger.info(
            "manifest_recorded",
            env=environment.name,
            type=event_type.value,
            name=name,
            count=count,
            failed=failed,
        )
        return manifest

    def record_set_install(
        self, environment: Environment, set_id: str, package_count: int, failed: int = 0
    ) -> Manifest:
        return self._record(environment, EventType.SET, set_id, package_count, failed)

    def record_role_install(self, environment: Environment, role_id: str, package_count: int) -> Manifest:
        return self._record(environment, EventType.ROLE, role_id, package_count)

    def record_packages(self, environment: Environment, packages: Iterable[str]) -> Manifest:
        packages = list(packages)

        def mutate(manifest: Manifest) -> None:
            manifest.updated = self._clock()
            manifest.installed_packages = sorted(set(manifest.installed_packages) | set(packages))

        return self._update(environment, mutate)

    def link_project(self, environment: Environment, path: Path) -> Manifest:
        """Point the manifest at the current project directory."""

        def mutate(manifest: Manifest) -> None:
            manifest.project_path = str(path)

        manifest = self._update(environment, mutate)
        logger.info("manifest_project_linked", env=environment.name, project=str(path))
        return manifest
