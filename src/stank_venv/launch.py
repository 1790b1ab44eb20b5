"""JupyterLab launching, quick resume and running session discovery."""

import re
from pathlib import Path
from typing import List, Optional

import psutil

from stank_venv.console import ColorCodes
from stank_venv.context import AppContext
from stank_venv.environments.environment import load_environment, project_path
from stank_venv.environments.session import load_session, save_session
from stank_venv.errors import NotFoundError, PersistenceError, log_error
from stank_venv.installer.sets import install_set
from stank_venv.logging import get_logger
from stank_venv.runtimes import runtime_for
from stank_venv.runtimes.commands import run_interactive
from stank_venv.types import Environment, RunningSession

logger = get_logger(__name__)

_JUPYTER_RE = re.compile(r"jupyter.*(lab|notebook)")


def resolve_work_dir(ctx: AppContext, environment: Environment, work_dir: Optional[Path] = None) -> Path:
    """Explicit directory, else the environment's project directory, else cwd."""
    if work_dir is not None:
        return Path(work_dir)
    project_dir = project_path(ctx.config, environment.name)
    if project_dir.is_dir():
        return project_dir
    return Path.cwd()


async def start_jupyter_lab(
    ctx: AppContext,
    environment: Environment,
    work_dir: Optional[Path] = None,
    port: Optional[int] = None,
    install_missing: bool = False,
) -> int:
    """Run JupyterLab in the environment until it exits; returns its exit code."""
    console = ctx.console
    port = port or ctx.config.jupyter_port
    console.section("LAUNCHING JUPYTERLAB")

    if not environment.jupyter_bin.exists():
        console.warn("JupyterLab not installed")
        if not install_missing:
            console.detail(f"Install it with: stank-venv add-set {environment.name} jupyter")
            return 1
        runtime = runtime_for(environment, ctx.config.package_manager)
        outcome = await install_set(ctx, runtime, environment, "jupyter")
        if outcome.failed or not environment.jupyter_bin.exists():
            console.err("JupyterLab could not be installed")
            return 1

    directory = resolve_work_dir(ctx, environment, work_dir)
    if not directory.is_dir():
        console.err(f"Directory not found: {directory}")
        return 1

    try:
        save_session(ctx.config.session_file, environment.name, directory)
    except PersistenceError as e:
        log_error(e, {"env": environment.name}, logger)
        console.warn(f"Could not save session: {e}")

    console.line()
    console.line(f"  {'=' * 60}", ColorCodes.GREEN)
    console.line("  JUPYTERLAB STARTING", ColorCodes.GREEN)
    console.line(f"  Environment: {environment.name}", ColorCodes.CYAN)
    console.line(f"  Directory  : {directory}", ColorCodes.CYAN)
    console.line(f"  Port       : {port}", ColorCodes.CYAN)
    console.line("  TO STOP    : Press Ctrl+C", ColorCodes.YELLOW)
    console.line(f"  {'=' * 60}", ColorCodes.GREEN)
    console.line()

    argv = [str(environment.python_bin), "-m", "jupyter", "lab", f"--port={port}"]
    logger.info("jupyter_starting", env=environment.name, work_dir=str(directory), port=port)
    return await run_interactive(argv, {"VIRTUAL_ENV": str(environment.root)}, cwd=directory)


async def resume_last_session(ctx: AppContext, port: Optional[int] = None) -> int:
    session = load_session(ctx.config.session_file)
    if session is None:
        raise NotFoundError("previous session", str(ctx.config.session_file))

    environment = load_environment(ctx.config, session.env_name)
    work_dir = Path(session.work_dir) if session.work_dir else None
    return await start_jupyter_lab(ctx, environment, work_dir, port)


def _listening_port(proc: psutil.Process) -> Optional[int]:
    try:
        connections = proc.net_connections(kind="inet")
    except (psutil.AccessDenied, psutil.NoSuchProcess, psutil.ZombieProcess):
        return None
    ports = sorted(c.laddr.port for c in connections if c.status == psutil.CONN_LISTEN and c.laddr)
    return ports[0] if ports else None


def _env_name(cmdline: str, venv_dir: Path) -> str:
    match = re.search(re.escape(str(venv_dir)) + r"/([^/\s]+)", cmdline)
    if match:
        return match.group(1)
    match = re.search(r"\.venvs/([^/\s]+)", cmdline)
    return match.group(1) if match else "unknown"


def running_sessions(venv_dir: Optional[Path] = None) -> List[RunningSession]:
    """Jupyter lab/notebook servers currently running on this machine."""
    venv_dir = venv_dir or Path.home() / ".venvs"
    sessions = []
    for proc in psutil.process_iter(["pid", "cmdline"]):
        cmdline = " ".join(proc.info.get("cmdline") or [])
        if not _JUPYTER_RE.search(cmdline):
            continue
        sessions.append(
            RunningSession(
                pid=proc.info["pid"],
                port=_listening_port(proc),
                env_name=_env_name(cmdline, venv_dir),
            )
        )
    logger.debug("running_sessions", count=len(sessions))
    return sessions
