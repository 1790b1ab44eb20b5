"""Python runtime implementation."""

import re
import shutil
import sys
from pathlib import Path
from typing import Optional, Sequence

from stank_venv.errors import EnvironmentCreationError
from stank_venv.logging import get_logger
from stank_venv.runtimes.commands import run_command
from stank_venv.types import Interpreter, PackageManager, Runtime

logger = get_logger(__name__)

CANDIDATES = ("python3.11", "python3.12", "python3", "python")
MINIMUM_VERSION = (3, 11)
ENV_SETUP = {
    "PYTHONUNBUFFERED": "1",
    "PIP_DISABLE_PIP_VERSION_CHECK": "1",
    "PIP_NO_INPUT": "1",
}

_VERSION_RE = re.compile(r"Python (\d+)\.(\d+)\.(\d+)")


def parse_version(output: str) -> Optional[tuple[int, int, int]]:
    """Parse ``python --version`` output."""
    match = _VERSION_RE.search(output)
    if not match:
        return None
    major, minor, micro = (int(part) for part in match.groups())
    return major, minor, micro


def venv_python(root: Path) -> Path:
    """Interpreter path inside a virtual environment."""
    if sys.platform == "win32":
        return root / "Scripts" / "python.exe"
    return root / "bin" / "python"


async def discover_interpreter(
    candidates: Sequence[str] = CANDIDATES,
    minimum: tuple[int, int] = MINIMUM_VERSION,
) -> Optional[Interpreter]:
    """Find the first host interpreter satisfying the minimum version."""
    for command in candidates:
        path = shutil.which(command)
        if not path:
            continue
        try:
            returncode, stdout, stderr = await run_command([path, "--version"])
        except OSError:
            continue
        if returncode != 0:
            continue
        version = parse_version((stdout or stderr).decode(errors="replace"))
        if version and version[:2] >= minimum:
            logger.info("interpreter_found", command=command, path=path, version=version)
            return Interpreter(command=command, path=Path(path), version=version)

    logger.warning("interpreter_not_found", candidates=list(candidates), minimum=minimum)
    return None


def resolve_package_manager(name: str) -> PackageManager:
    """Map a configured package manager to one usable on this host."""
    if name == "uv":
        if shutil.which("uv"):
            return PackageManager.UV
        logger.warning("package_manager_unavailable", requested="uv", using="pip")
    return PackageManager.PIP


async def create_runtime(
    interpreter: Interpreter,
    path: Path,
    package_manager: PackageManager = PackageManager.PIP,
) -> Runtime:
    """Create an isolated runtime at ``path`` with the stdlib venv module."""
    argv = [str(interpreter.path), "-m", "venv", str(path)]
    try:
        returncode, _, stderr = await run_command(argv)
    except OSError as e:
        raise EnvironmentCreationError(
            f"Could not run {interpreter.path}: {e}", details={"path": str(path)}
        ) from e

    if returncode != 0:
        raise EnvironmentCreationError(
            f"venv creation failed with code {returncode}",
            details={"path": str(path), "stderr": stderr.decode(errors="replace")},
        )

    python_bin = venv_python(path)
    if not python_bin.exists():
        raise EnvironmentCreationError(
            "Environment created but python not found", details={"path": str(python_bin)}
        )

    logger.info("runtime_created", path=str(path), python=str(python_bin))
    return Runtime(
        root=path,
        python_bin=python_bin,
        package_manager=package_manager,
        env_vars=dict(ENV_SETUP),
    )


def install_command(runtime: Runtime, package: str) -> list[str]:
    """Quiet, non-interactive install command for a single package."""
    match runtime.package_manager:
        case PackageManager.UV:
            return ["uv", "pip", "install", "--python", str(runtime.python_bin), "--quiet", package]
        case PackageManager.PIP:
            return [
                str(runtime.python_bin),
                "-m",
                "pip",
                "install",
                package,
                "--quiet",
                "--disable-pip-version-check",
            ]
        case _:
            raise RuntimeError(f"Unsupported package manager: {runtime.package_manager}")


async def upgrade_pip(runtime: Runtime) -> bool:
    """Upgrade pip inside the runtime, returning whether it succeeded."""
    argv = [str(runtime.python_bin), "-m", "pip", "install", "--upgrade", "pip", "--quiet"]
    try:
        returncode, _, stderr = await run_command(argv, runtime.env_vars)
    except OSError as e:
        logger.warning("pip_upgrade_failed", error=str(e))
        return False
    if returncode != 0:
        logger.warning("pip_upgrade_failed", error=stderr.decode(errors="replace"))
        return False
    return True
