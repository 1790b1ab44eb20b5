"""Package set installation."""

import asyncio
import time
from typing import List, Optional

from stank_venv.context import AppContext
from stank_venv.errors import PersistenceError, log_error
from stank_venv.installer.progress import SetProgress
from stank_venv.installer.retry import install_with_retries
from stank_venv.logging import get_logger
from stank_venv.types import Environment, InstallResult, Runtime, SetOutcome, SetStatus

logger = get_logger(__name__)


async def _install_sequential(
    ctx: AppContext, runtime: Runtime, packages: List[str], progress: SetProgress
) -> List[InstallResult]:
    results = []
    for package in packages:
        progress.package_started(package)
        result = await install_with_retries(
            ctx.installer,
            runtime,
            package,
            attempts=ctx.config.retry_attempts,
            delay=ctx.config.retry_delay,
            on_retry=progress.retrying,
            sleep=ctx.sleep,
        )
        progress.package_finished(result)
        results.append(result)
    return results


async def _install_parallel(
    ctx: AppContext, runtime: Runtime, packages: List[str], progress: SetProgress
) -> List[InstallResult]:
    limit = asyncio.Semaphore(ctx.config.concurrency)

    async def install_one(package: str) -> InstallResult:
        async with limit:
            progress.package_started(package)
            result = await install_with_retries(
                ctx.installer,
                runtime,
                package,
                attempts=ctx.config.retry_attempts,
                delay=ctx.config.retry_delay,
                on_retry=progress.retrying,
                sleep=ctx.sleep,
            )
            progress.package_finished(result)
            return result

    # install_with_retries never raises for failed installs, so one failure
    # leaves its siblings running
    return list(await asyncio.gather(*(install_one(p) for p in packages)))


def _record(ctx: AppContext, environment: Environment, set_id: str, packages: List[str], failed: int) -> None:
    # The set marker is written last so a failed write leaves the set retryable
    try:
        ctx.manifests.record_packages(environment, packages)
        ctx.manifests.record_set_install(environment, set_id, len(packages), failed=failed)
    except PersistenceError as e:
        log_error(e, {"env": environment.name, "set": set_id}, logger)
        ctx.console.warn(f"Could not update manifest: {e}")
        ctx.console.detail("Packages were installed but are not tracked")


async def install_set(
    ctx: AppContext,
    runtime: Runtime,
    environment: Environment,
    set_id: str,
    display_name: Optional[str] = None,
) -> SetOutcome:
    """Install every package of a set, best effort.

    Returns immediately when the manifest already lists the set. Each
    package gets the configured retry budget; a failed package never stops
    the remaining ones. The set and its full package list are recorded
    afterwards whatever the individual results.
    """
    display_name = display_name or ctx.catalog.set_name(set_id)

    try:
        already_installed = ctx.manifests.is_set_installed(environment, set_id)
    except PersistenceError as e:
        ctx.console.warn(f"Could not read manifest: {e}")
        already_installed = False
    if already_installed:
        ctx.console.info(f"Package set '{display_name}' already installed - skipping")
        logger.info("set_install_skipped", env=environment.name, set_id=set_id)
        return SetOutcome(set_id=set_id, status=SetStatus.SKIPPED)

    packages = ctx.catalog.set_packages(set_id)
    if not packages:
        ctx.console.warn(f"Package set '{set_id}' not found or empty")
        logger.warning("set_not_found", set_id=set_id)
        return SetOutcome(set_id=set_id, status=SetStatus.NOT_FOUND)

    progress = SetProgress(
        ctx.console,
        total=len(packages),
        describe=ctx.catalog.describe,
        description_width=ctx.config.description_width,
        eta_interval=ctx.config.eta_interval,
        parallel=ctx.config.concurrency,
    )
    progress.start(display_name)
    logger.info("set_install_started", env=environment.name, set_id=set_id, packages=len(packages))

    start = time.monotonic()
    if ctx.config.concurrency > 1:
        results = await _install_parallel(ctx, runtime, packages, progress)
    else:
        results = await _install_sequential(ctx, runtime, packages, progress)
    elapsed = time.monotonic() - start

    outcome = SetOutcome(set_id=set_id, status=SetStatus.INSTALLED, results=tuple(results), elapsed=elapsed)
    progress.summary(results, elapsed)
    logger.info(
        "set_install_complete",
        env=environment.name,
        set_id=set_id,
        succeeded=outcome.succeeded,
        failed=outcome.failed,
        elapsed=round(elapsed, 2),
    )

    _record(ctx, environment, set_id, packages, outcome.failed)
    return outcome
