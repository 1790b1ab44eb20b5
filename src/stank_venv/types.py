"""Core type definitions"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

PackageManager = Enum("PackageManager", ["PIP", "UV"])


class EventType(str, Enum):
    SET = "set"
    ROLE = "role"


class SetStatus(str, Enum):
    INSTALLED = "installed"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class PackageSet:
    """Named group of packages installed together"""
    id: str
    name: str
    category: str
    packages: Tuple[str, ...]


@dataclass(frozen=True)
class JobRole:
    """Bundle of package sets for a profession"""
    id: str
    name: str
    description: str
    sets: Tuple[str, ...]
    install_time: str = "unknown"
    disk_estimate: str = "unknown"


@dataclass(frozen=True)
class Interpreter:
    """Host interpreter found by runtime discovery"""
    command: str
    path: Path
    version: Tuple[int, int, int]

    @property
    def version_string(self) -> str:
        return ".".join(str(part) for part in self.version)


@dataclass(frozen=True)
class Runtime:
    """Handle to an isolated runtime that packages can be installed into"""
    root: Path
    python_bin: Path
    package_manager: PackageManager = PackageManager.PIP
    env_vars: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Environment:
    """Virtual environment living under the installation root"""
    name: str
    root: Path
    python_bin: Path
    runtime_version: str = "unknown"

    @property
    def manifest_path(self) -> Path:
        return self.root / "stank-manifest.json"

    @property
    def bin_dir(self) -> Path:
        return self.python_bin.parent

    @property
    def jupyter_bin(self) -> Path:
        return self.bin_dir / "jupyter"

    @property
    def activate_command(self) -> str:
        return f"source {self.bin_dir / 'activate'}"


@dataclass(frozen=True)
class EnvironmentInfo:
    """Row of the environment listing"""
    name: str
    root: Path
    runtime_version: str
    has_jupyter: bool
    size_bytes: int


@dataclass(frozen=True)
class InstallEvent:
    """Single entry of a manifest's install history"""
    type: EventType
    name: str
    count: int
    date: str
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "count": self.count,
            "date": self.date,
            "failed": self.failed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstallEvent":
        return cls(
            type=EventType(data["type"]),
            name=str(data["name"]),
            count=int(data.get("count", 0)),
            date=str(data.get("date", "")),
            failed=int(data.get("failed", 0)),
        )


@dataclass
class Manifest:
    """Durable record of what was installed into an environment"""
    created: str
    updated: str
    runtime_version: str
    installed_sets: List[str] = field(default_factory=list)
    installed_roles: List[str] = field(default_factory=list)
    installed_packages: List[str] = field(default_factory=list)
    project_path: Optional[str] = None
    install_history: List[InstallEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "runtime_version": self.runtime_version,
            "installed_sets": list(self.installed_sets),
            "installed_roles": list(self.installed_roles),
            "installed_packages": list(self.installed_packages),
            "project_path": self.project_path,
            "install_history": [event.to_dict() for event in self.install_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        # Older manifests name the field "python_version"
        version = data.get("runtime_version") or data.get("python_version") or "unknown"
        return cls(
            created=str(data.get("created", "")),
            updated=str(data.get("updated", "")),
            runtime_version=str(version),
            installed_sets=list(data.get("installed_sets") or []),
            installed_roles=list(data.get("installed_roles") or []),
            installed_packages=list(data.get("installed_packages") or []),
            project_path=data.get("project_path"),
            install_history=[
                InstallEvent.from_dict(event) for event in data.get("install_history") or []
            ],
        )


@dataclass(frozen=True)
class SessionState:
    """Most recently launched environment"""
    env_name: str
    work_dir: str
    date: str


@dataclass(frozen=True)
class InstallResult:
    """Outcome of installing one package"""
    package: str
    success: bool
    elapsed: float
    error: Optional[str] = None
    attempts: int = 1


@dataclass(frozen=True)
class SetOutcome:
    """Outcome of a package set install"""
    set_id: str
    status: SetStatus
    results: Tuple[InstallResult, ...] = ()
    elapsed: float = 0.0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def failed_packages(self) -> List[str]:
        return [r.package for r in self.results if not r.success]


@dataclass(frozen=True)
class RoleOutcome:
    """Outcome of a job role install"""
    role_id: str
    set_outcomes: Tuple[SetOutcome, ...]
    package_count: int
    elapsed: float = 0.0

    @property
    def succeeded(self) -> int:
        return sum(outcome.succeeded for outcome in self.set_outcomes)

    @property
    def failed(self) -> int:
        return sum(outcome.failed for outcome in self.set_outcomes)


@dataclass(frozen=True)
class CreateResult:
    """Outcome of creating an environment"""
    environment: Environment
    set_outcomes: Tuple[SetOutcome, ...] = ()
    project_dir: Optional[Path] = None
    installs_skipped: bool = False
    pip_upgraded: bool = True

    @property
    def failed(self) -> int:
        return sum(outcome.failed for outcome in self.set_outcomes)


@dataclass(frozen=True)
class RunningSession:
    """Jupyter server process found on this machine"""
    pid: int
    port: Optional[int]
    env_name: str
