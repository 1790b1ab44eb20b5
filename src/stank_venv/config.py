"""Configuration loading.

Values are layered: built-in defaults, then the TOML config file, then
``STANK_VENV_*`` environment variables. Command line flags are applied on
top by the CLI through :func:`dataclasses.replace`.
"""

import os
from dataclasses import dataclass, field, fields, replace
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import appdirs
import tomli

from stank_venv.errors import ConfigurationError
from stank_venv.logging import get_logger

logger = get_logger(__name__)

APP_NAME = "stank-venv"
ENV_PREFIX = "STANK_VENV_"
PACKAGE_MANAGERS = ("pip", "uv")
MAX_CONCURRENCY = 4


def bundled_data_file(name: str) -> Path:
    """Path of a data file shipped inside the package."""
    return Path(str(resources.files("stank_venv") / "data" / name))


def default_config_file() -> Path:
    return Path(appdirs.user_config_dir(APP_NAME)) / "config.toml"


def default_log_file() -> Path:
    return Path(appdirs.user_log_dir(APP_NAME)) / "stank-venv.log"


@dataclass(frozen=True)
class Config:
    """Runtime settings shared by every component"""
    venv_dir: Path = field(default_factory=lambda: Path.home() / ".venvs")
    projects_dir: Path = field(default_factory=lambda: Path.home() / "JupyterProjects")
    state_file: Optional[Path] = None
    packages_file: Path = field(default_factory=lambda: bundled_data_file("packages.json"))
    glossary_file: Path = field(default_factory=lambda: bundled_data_file("glossary.json"))
    retry_attempts: int = 3
    retry_delay: float = 5.0
    eta_interval: int = 5
    description_width: int = 35
    min_disk_gb: float = 2.0
    full_install_disk_gb: float = 12.0
    concurrency: int = 1
    package_manager: str = "pip"
    network_check_url: str = "https://pypi.org"
    jupyter_port: int = 8888
    log_level: str = "WARNING"
    log_file: Optional[Path] = None

    @property
    def session_file(self) -> Path:
        return self.state_file or self.venv_dir / ".last-session.json"

    def validate(self) -> "Config":
        if self.retry_attempts < 1:
            raise ConfigurationError("retry_attempts must be at least 1")
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay cannot be negative")
        if self.eta_interval < 1:
            raise ConfigurationError("eta_interval must be at least 1")
        if self.description_width < 4:
            raise ConfigurationError("description_width must be at least 4")
        if not 1 <= self.concurrency <= MAX_CONCURRENCY:
            raise ConfigurationError(
                f"concurrency must be between 1 and {MAX_CONCURRENCY}",
                details={"concurrency": self.concurrency},
            )
        if self.package_manager not in PACKAGE_MANAGERS:
            raise ConfigurationError(
                f"package_manager must be one of {', '.join(PACKAGE_MANAGERS)}",
                details={"package_manager": self.package_manager},
            )
        return self


def _coerce(name: str, value: Any, current: Any) -> Any:
    """Convert a raw TOML/env value to the type of the default."""
    path_fields = {"venv_dir", "projects_dir", "state_file", "packages_file", "glossary_file", "log_file"}
    try:
        if name in path_fields:
            return Path(os.path.expanduser(str(value)))
        if isinstance(current, int):
            return int(value)
        if isinstance(current, float):
            return float(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid value for {name}: {value!r}", details={"key": name}
        ) from e


def _apply(config: Config, values: Mapping[str, Any], source: str) -> Config:
    known = {f.name for f in fields(Config)}
    updates: Dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            logger.warning("unknown_config_key", key=key, source=source)
            continue
        updates[key] = _coerce(key, value, getattr(config, key))
    return replace(config, **updates) if updates else config


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read the ``[stank-venv]`` table (or the top level) of a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomli.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, tomli.TOMLDecodeError) as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}", details={"path": str(path)}) from e

    table = data.get(APP_NAME, data)
    if not isinstance(table, dict):
        raise ConfigurationError(f"Config file {path} must contain a table", details={"path": str(path)})
    return table


def env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    return {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX) and key != f"{ENV_PREFIX}CONFIG"
    }


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Config:
    """Build the effective configuration."""
    environ = os.environ if environ is None else environ
    if path is None and f"{ENV_PREFIX}CONFIG" in environ:
        path = Path(environ[f"{ENV_PREFIX}CONFIG"])
    config_path = path or default_config_file()

    config = Config()
    config = _apply(config, read_config_file(config_path), str(config_path))
    config = _apply(config, env_overrides(environ), "environment")

    logger.debug("config_loaded", path=str(config_path), venv_dir=str(config.venv_dir))
    return config.validate()
