"""Bounded retries around the install executor."""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from stank_venv.errors import TransientInstallError
from stank_venv.installer.executor import PackageInstaller
from stank_venv.logging import get_logger
from stank_venv.types import InstallResult, Runtime

logger = get_logger(__name__)

RetryObserver = Callable[[str, int, TransientInstallError], None]


async def retry(
    attempt: Callable[[], Awaitable[InstallResult]],
    attempts: int,
    delay: float,
    on_retry: Optional[RetryObserver] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[InstallResult, int]:
    """Call ``attempt`` until it succeeds or ``attempts`` calls were made.

    Failed results are turned into TransientInstallError so observers see
    the attempt number and captured output. Returns the last result and
    the number of calls made.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    number = 1
    while True:
        result = await attempt()
        if result.success:
            return result, number

        error = TransientInstallError(result.package, result.error or "")
        logger.info("install_attempt_failed", package=result.package, attempt=number, attempts=attempts)
        if number == attempts:
            return result, number
        if on_retry is not None:
            on_retry(result.package, number, error)
        await sleep(delay)
        number += 1


async def install_with_retries(
    installer: PackageInstaller,
    runtime: Runtime,
    package: str,
    attempts: int = 3,
    delay: float = 5.0,
    on_retry: Optional[RetryObserver] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> InstallResult:
    """Install a package with the retry budget; never raises for install failures.

    The returned result carries the wall time spent over every attempt,
    including retry delays, and the number of attempts made.
    """
    start = time.monotonic()
    result, made = await retry(
        lambda: installer(runtime, package), attempts, delay, on_retry, sleep
    )
    return InstallResult(
        package=package,
        success=result.success,
        elapsed=time.monotonic() - start,
        error=None if result.success else result.error,
        attempts=made,
    )
