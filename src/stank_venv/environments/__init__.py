"""Environment storage: manifests, session state and preflight checks."""

from stank_venv.environments.manifest import ManifestStore, atomic_write_json
from stank_venv.environments.session import load_session, save_session

__all__ = ["ManifestStore", "atomic_write_json", "load_session", "save_session"]
