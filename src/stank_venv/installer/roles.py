"""Job role installation."""

import time
from typing import List

from stank_venv.console import WIDTH, ColorCodes
from stank_venv.context import AppContext
from stank_venv.errors import NotFoundError, PersistenceError, log_error
from stank_venv.installer.sets import install_set
from stank_venv.logging import get_logger
from stank_venv.types import Environment, RoleOutcome, Runtime, SetOutcome

logger = get_logger(__name__)


async def _install_sets(
    ctx: AppContext, runtime: Runtime, environment: Environment, set_ids: List[str]
) -> List[SetOutcome]:
    outcomes = []
    for number, set_id in enumerate(set_ids, start=1):
        display_name = ctx.catalog.set_name(set_id)
        ctx.console.line(f"    [{number}/{len(set_ids)}] {display_name}...", ColorCodes.CYAN)
        outcomes.append(await install_set(ctx, runtime, environment, set_id, display_name))
    return outcomes


def _summary(ctx: AppContext, title: str, outcome: RoleOutcome) -> None:
    ctx.console.line()
    ctx.console.line(f"  {'=' * WIDTH}", ColorCodes.MAGENTA)
    ctx.console.line(f"    {title}", ColorCodes.MAGENTA)
    ctx.console.line(f"    Packages installed: {outcome.succeeded}", ColorCodes.GREEN)
    if outcome.failed:
        ctx.console.line(f"    Packages failed:    {outcome.failed}", ColorCodes.RED)
    ctx.console.line(f"  {'=' * WIDTH}", ColorCodes.MAGENTA)
    ctx.console.line()


async def install_role(
    ctx: AppContext, runtime: Runtime, environment: Environment, role_id: str
) -> RoleOutcome:
    """Install every set of a job role in declared order.

    Raises NotFoundError before doing anything when the role is unknown.
    """
    set_ids = ctx.catalog.role_sets(role_id)
    if not set_ids:
        raise NotFoundError("job role", role_id)

    role = ctx.catalog.get_role(role_id)
    package_count = len(ctx.catalog.union_packages(set_ids))

    ctx.console.banner(f"JOB ROLE: {role.name}", ColorCodes.MAGENTA)
    if role.description:
        ctx.console.line(f"    {role.description}", ColorCodes.GRAY)
        ctx.console.line()
    ctx.console.line(f"    Package sets:    {len(set_ids)}")
    ctx.console.line(f"    Total packages:  {package_count}")
    ctx.console.line(f"    Estimated time:  {role.install_time}", ColorCodes.GRAY)
    ctx.console.line(f"    Disk estimate:   {role.disk_estimate}", ColorCodes.GRAY)
    ctx.console.line()
    logger.info("role_install_started", env=environment.name, role_id=role_id, sets=set_ids)

    start = time.monotonic()
    outcomes = await _install_sets(ctx, runtime, environment, set_ids)
    outcome = RoleOutcome(
        role_id=role_id,
        set_outcomes=tuple(outcomes),
        package_count=package_count,
        elapsed=time.monotonic() - start,
    )

    try:
        ctx.manifests.record_role_install(environment, role_id, package_count)
    except PersistenceError as e:
        log_error(e, {"env": environment.name, "role": role_id}, logger)
        ctx.console.warn(f"Could not record job role in manifest: {e}")

    _summary(ctx, f"JOB ROLE INSTALLATION COMPLETE: {role.name}", outcome)
    logger.info(
        "role_install_complete",
        env=environment.name,
        role_id=role_id,
        succeeded=outcome.succeeded,
        failed=outcome.failed,
    )
    return outcome


async def install_all_sets(ctx: AppContext, runtime: Runtime, environment: Environment) -> RoleOutcome:
    """Install every catalog set, the "full" preset."""
    set_ids = [package_set.id for package_set in ctx.catalog.sets()]
    package_count = len(ctx.catalog.union_packages(set_ids))

    ctx.console.banner("INSTALLING ALL PACKAGE SETS", ColorCodes.MAGENTA)
    ctx.console.line(f"    This will install {len(set_ids)} sets with {package_count} packages.", ColorCodes.GRAY)
    ctx.console.line()

    start = time.monotonic()
    outcomes = await _install_sets(ctx, runtime, environment, set_ids)
    outcome = RoleOutcome(
        role_id="full",
        set_outcomes=tuple(outcomes),
        package_count=package_count,
        elapsed=time.monotonic() - start,
    )
    _summary(ctx, "FULL INSTALLATION COMPLETE", outcome)
    return outcome
