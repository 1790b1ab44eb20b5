"""Single-attempt package installation."""

import time
from typing import Awaitable, Protocol

from stank_venv.logging import get_logger
from stank_venv.runtimes.commands import run_command
from stank_venv.runtimes.python import install_command
from stank_venv.types import InstallResult, Runtime

logger = get_logger(__name__)


class PackageInstaller(Protocol):
    def __call__(self, runtime: Runtime, package: str) -> Awaitable[InstallResult]: ...


async def install_package(runtime: Runtime, package: str) -> InstallResult:
    """Install one package into the runtime, exactly one attempt.

    Output is discarded on success. On failure stderr (or stdout when
    stderr is empty) is kept as the error detail.
    """
    argv = install_command(runtime, package)
    start = time.monotonic()
    try:
        returncode, stdout, stderr = await run_command(argv, runtime.env_vars)
    except OSError as e:
        elapsed = time.monotonic() - start
        logger.warning("install_launch_failed", package=package, error=str(e))
        return InstallResult(package=package, success=False, elapsed=elapsed, error=str(e))

    elapsed = time.monotonic() - start
    if returncode == 0:
        logger.debug("install_succeeded", package=package, elapsed=round(elapsed, 2))
        return InstallResult(package=package, success=True, elapsed=elapsed)

    output = (stderr or stdout or b"").decode(errors="replace").strip()
    logger.debug("install_failed", package=package, returncode=returncode, elapsed=round(elapsed, 2))
    return InstallResult(
        package=package,
        success=False,
        elapsed=elapsed,
        error=output or f"exit code {returncode}",
    )
