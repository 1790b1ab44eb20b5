"""Last-session state for quick resume."""

import json
from pathlib import Path
from typing import Optional

from stank_venv.environments.manifest import atomic_write_json, timestamp
from stank_venv.errors import PersistenceError
from stank_venv.logging import get_logger
from stank_venv.types import SessionState

logger = get_logger(__name__)


def save_session(path: Path, env_name: str, work_dir: Path) -> SessionState:
    """Overwrite the session record. Raises PersistenceError."""
    state = SessionState(env_name=env_name, work_dir=str(work_dir), date=timestamp())
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PersistenceError(f"Could not create {path.parent}: {e}", path=path) from e
    atomic_write_json(path, {"env_name": state.env_name, "work_dir": state.work_dir, "date": state.date})
    logger.info("session_saved", env=env_name, work_dir=str(work_dir))
    return state


def load_session(path: Path) -> Optional[SessionState]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("session_unreadable", path=str(path), error=str(e))
        return None

    if not isinstance(data, dict) or not data.get("env_name"):
        return None
    return SessionState(
        env_name=str(data["env_name"]),
        work_dir=str(data.get("work_dir") or ""),
        date=str(data.get("date") or ""),
    )
