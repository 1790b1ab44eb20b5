"""Subprocess execution for runtime commands."""

import asyncio
import os
from pathlib import Path
from typing import Optional, Sequence

from stank_venv.logging import get_logger

logger = get_logger(__name__)


async def run_command(
    argv: Sequence[str],
    env_vars: Optional[dict[str, str]] = None,
    cwd: Optional[Path] = None,
) -> tuple[int, bytes, bytes]:
    """Run a command and return (returncode, stdout, stderr)."""

    cmd_env = {**os.environ, **(env_vars or {})}

    logger.debug("cmd_exec", argv=list(argv), cwd=str(cwd) if cwd else None)

    process = await asyncio.create_subprocess_exec(
        *argv,
        cwd=cwd,
        env=cmd_env,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    stdout, stderr = await process.communicate()

    if stderr:
        logger.debug("cmd_stderr", argv=list(argv), output=stderr.decode(errors="replace"))

    logger.debug("cmd_complete", argv=list(argv), returncode=process.returncode)

    return process.returncode, stdout, stderr


async def run_interactive(
    argv: Sequence[str],
    env_vars: Optional[dict[str, str]] = None,
    cwd: Optional[Path] = None,
) -> int:
    """Run a command attached to the terminal and return its exit code."""

    cmd_env = {**os.environ, **(env_vars or {})}
    logger.debug("cmd_exec_interactive", argv=list(argv), cwd=str(cwd) if cwd else None)

    process = await asyncio.create_subprocess_exec(*argv, cwd=cwd, env=cmd_env)
    return await process.wait()
