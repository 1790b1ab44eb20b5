"""Environment lifecycle management."""

import re
from pathlib import Path
from typing import List, Optional

from stank_venv.config import Config
from stank_venv.context import AppContext
from stank_venv.environments.preflight import check_disk_space, folder_size, free_disk_gb
from stank_venv.errors import (
    AlreadyExistsError,
    EnvironmentCreationError,
    InvalidNameError,
    NotFoundError,
    PersistenceError,
    log_error,
)
from stank_venv.installer.roles import install_all_sets, install_role
from stank_venv.installer.sets import install_set
from stank_venv.logging import get_logger
from stank_venv.runtimes import runtime_for, venv_python
from stank_venv.types import (
    CreateResult,
    Environment,
    EnvironmentInfo,
    RoleOutcome,
    Runtime,
    SetOutcome,
)

logger = get_logger(__name__)

MAX_NAME_LENGTH = 64
PROJECT_SUBDIRS = ("notebooks", "data", "outputs", "scripts")
PRESET_NONE = "none"
PRESET_FULL = "full"
PRESET_DATA_SCIENCE = "data_science"
DATA_SCIENCE_SETS = ("jupyter", "data_science")

_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def sanitize_env_name(raw: str) -> str:
    """Normalize user input into a safe environment name.

    "My Test Env!" becomes "my-test-env".
    """
    clean = raw.strip().lower()
    clean = re.sub(r"[ _]", "-", clean)
    clean = re.sub(r"[^a-z0-9-]", "", clean)
    clean = re.sub(r"-+", "-", clean)
    clean = clean.strip("-")
    return clean[:MAX_NAME_LENGTH]


def validate_env_name(name: str) -> str:
    if not name:
        raise InvalidNameError(name, "Environment name cannot be empty")
    if len(name) < 2:
        raise InvalidNameError(name, "Environment name must be at least 2 characters")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidNameError(name, f"Environment name cannot exceed {MAX_NAME_LENGTH} characters")
    if not re.match(r"^[a-z0-9]", name):
        raise InvalidNameError(name, "Environment name must start with a letter or number")
    if not _NAME_RE.match(name):
        raise InvalidNameError(
            name, "Environment name can only contain lowercase letters, numbers, and dashes"
        )
    if name.endswith("-"):
        raise InvalidNameError(name, "Environment name cannot end with a dash")
    return name


def environment_path(config: Config, name: str) -> Path:
    return config.venv_dir / name


def project_path(config: Config, name: str) -> Path:
    return config.projects_dir / name


def read_runtime_version(root: Path) -> str:
    """Interpreter version recorded in ``pyvenv.cfg``."""
    cfg = root / "pyvenv.cfg"
    try:
        lines = cfg.read_text(encoding="utf-8").splitlines()
    except OSError:
        return "unknown"

    values = {}
    for line in lines:
        key, sep, value = line.partition("=")
        if sep:
            values[key.strip()] = value.strip()

    version = values.get("version") or values.get("version_info")
    if not version:
        return "unknown"
    return ".".join(version.split(".")[:3])


def load_environment(config: Config, name: str) -> Environment:
    root = environment_path(config, name)
    python_bin = venv_python(root)
    if not root.is_dir() or not python_bin.exists():
        raise NotFoundError("environment", name)
    return Environment(
        name=name,
        root=root,
        python_bin=python_bin,
        runtime_version=read_runtime_version(root),
    )


def list_environments(config: Config) -> List[EnvironmentInfo]:
    """Environments under the installation root that have an interpreter."""
    if not config.venv_dir.is_dir():
        return []

    rows = []
    for root in sorted(config.venv_dir.iterdir()):
        if not root.is_dir() or not venv_python(root).exists():
            continue
        environment = Environment(name=root.name, root=root, python_bin=venv_python(root))
        rows.append(
            EnvironmentInfo(
                name=root.name,
                root=root,
                runtime_version=read_runtime_version(root),
                has_jupyter=environment.jupyter_bin.exists(),
                size_bytes=folder_size(root),
            )
        )
    return rows


def resolve_preset(ctx: AppContext, preset: str) -> str:
    """Classify a preset as none, full, data_science, role or set."""
    if preset in (PRESET_NONE, PRESET_FULL, PRESET_DATA_SCIENCE):
        return preset
    if ctx.catalog.role_sets(preset):
        return "role"
    if ctx.catalog.get_set(preset) is not None:
        return "set"
    raise NotFoundError("preset", preset)


def link_project_dir(ctx: AppContext, environment: Environment, path: Path) -> bool:
    try:
        ctx.manifests.link_project(environment, path)
    except PersistenceError as e:
        log_error(e, {"env": environment.name, "project": str(path)}, logger)
        ctx.console.warn(f"Could not link project in manifest: {e}")
        return False
    return True


def create_project_dir(ctx: AppContext, environment: Environment) -> Path:
    """Create the project directory, only ever adding missing subdirectories."""
    path = project_path(ctx.config, environment.name)
    existed = path.is_dir()
    if existed:
        ctx.console.warn(f"Project directory already exists: {path}")
        ctx.console.info("Existing files preserved - creating only missing subdirectories")

    try:
        for subdir in PROJECT_SUBDIRS:
            (path / subdir).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise EnvironmentCreationError(
            f"Could not create project directory {path}: {e}", details={"path": str(path)}
        ) from e

    if not existed:
        ctx.console.ok(f"Created project: {path}")
    link_project_dir(ctx, environment, path)
    return path


async def _install_preset(
    ctx: AppContext, runtime: Runtime, environment: Environment, preset: str, kind: str
) -> List[SetOutcome]:
    match kind:
        case "set":
            return [await install_set(ctx, runtime, environment, preset)]
        case "data_science":
            return [await install_set(ctx, runtime, environment, set_id) for set_id in DATA_SCIENCE_SETS]
        case "role":
            outcome = await install_role(ctx, runtime, environment, preset)
            return list(outcome.set_outcomes)
        case "full":
            outcome = await install_all_sets(ctx, runtime, environment)
            return list(outcome.set_outcomes)
        case _:
            return []


async def create_environment(
    ctx: AppContext,
    name: str,
    preset: str = PRESET_NONE,
    create_project: bool = False,
) -> CreateResult:
    """Create a new environment and optionally install a preset into it.

    Nothing is written when the name is invalid, the preset unknown or the
    target directory already exists. A failed runtime creation leaves no
    manifest behind.
    """
    console = ctx.console
    console.section(f"CREATING ENVIRONMENT: {name}")

    validate_env_name(name)
    kind = resolve_preset(ctx, preset)
    console.ok(f"Name '{name}' is valid")

    root = environment_path(ctx.config, name)
    if root.exists():
        raise AlreadyExistsError(name, root)

    required_gb = ctx.config.full_install_disk_gb if kind == PRESET_FULL else ctx.config.min_disk_gb
    if not check_disk_space(ctx.config.venv_dir, required_gb):
        console.warn(
            f"Low disk space: {free_disk_gb(ctx.config.venv_dir):.1f} GB free, "
            f"{required_gb:.0f} GB recommended"
        )

    try:
        ctx.config.venv_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise EnvironmentCreationError(
            f"Could not create {ctx.config.venv_dir}: {e}", details={"path": str(ctx.config.venv_dir)}
        ) from e

    console.step(1, "CREATING VIRTUAL ENVIRONMENT")
    console.detail(f"venv {root}")
    runtime = await ctx.runtime_factory(root)
    if not runtime.python_bin.exists():
        raise EnvironmentCreationError(
            "Environment created but python not found", details={"path": str(runtime.python_bin)}
        )
    environment = Environment(
        name=name,
        root=root,
        python_bin=runtime.python_bin,
        runtime_version=read_runtime_version(root),
    )
    console.ok(f"Environment created: {root}")
    logger.info("environment_created", env=name, path=str(root), version=environment.runtime_version)

    try:
        ctx.manifests.initialize(environment)
    except PersistenceError as e:
        log_error(e, {"env": name}, logger)
        console.warn(f"Could not write manifest: {e}")

    console.step(2, "UPGRADING PIP")
    pip_upgraded = await ctx.pip_upgrader(runtime)
    if pip_upgraded:
        console.ok("pip upgraded")
    else:
        console.warn("pip upgrade failed (continuing anyway)")

    outcomes: List[SetOutcome] = []
    installs_skipped = False
    if kind != PRESET_NONE:
        console.step(3, "INSTALLING PACKAGES")
        if await ctx.network_check():
            outcomes = await _install_preset(ctx, runtime, environment, preset, kind)
        else:
            installs_skipped = True
            console.warn("Skipping package installation (no network)")
            logger.warning("install_skipped_no_network", env=name, preset=preset)

    project_dir: Optional[Path] = None
    if create_project:
        project_dir = create_project_dir(ctx, environment)

    console.section("ENVIRONMENT CREATED SUCCESSFULLY")
    console.line(f"  Name: {name}")
    console.line(f"  Path: {root}")
    console.line(f"  Activate: {environment.activate_command}")

    return CreateResult(
        environment=environment,
        set_outcomes=tuple(outcomes),
        project_dir=project_dir,
        installs_skipped=installs_skipped,
        pip_upgraded=pip_upgraded,
    )


async def add_set(ctx: AppContext, name: str, set_id: str) -> SetOutcome:
    """Install a package set into an existing environment."""
    environment = load_environment(ctx.config, name)
    runtime = runtime_for(environment, ctx.config.package_manager)
    return await install_set(ctx, runtime, environment, set_id)


async def add_role(ctx: AppContext, name: str, role_id: str) -> RoleOutcome:
    """Install a job role into an existing environment."""
    environment = load_environment(ctx.config, name)
    runtime = runtime_for(environment, ctx.config.package_manager)
    return await install_role(ctx, runtime, environment, role_id)
