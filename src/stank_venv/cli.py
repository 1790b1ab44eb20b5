"""Command line interface."""

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

from stank_venv import __version__
from stank_venv.config import MAX_CONCURRENCY, Config, default_log_file, load_config
from stank_venv.console import ColorCodes, Console
from stank_venv.context import AppContext, build_context
from stank_venv.environments.environment import (
    add_role,
    add_set,
    create_environment,
    list_environments,
    load_environment,
    sanitize_env_name,
)
from stank_venv.environments.preflight import human_size
from stank_venv.errors import ConfigurationError, InvalidNameError, StankVenvError, log_error
from stank_venv.launch import resume_last_session, running_sessions, start_jupyter_lab
from stank_venv.logging import configure_logging, get_logger
from stank_venv.types import SetStatus

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

ContextFactory = Callable[[Config, Console], AppContext]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stank-venv",
        description="Create Python virtual environments and install curated package sets and job roles.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", dest="config", type=Path, help="Path to a TOML config file")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level for stderr and the log file",
    )
    parser.add_argument(
        "--concurrency",
        dest="concurrency",
        type=int,
        help=f"Packages installed at once (1-{MAX_CONCURRENCY})",
    )
    parser.add_argument("--no-color", dest="no_color", action="store_true", help="Disable coloured output")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    create = sub.add_parser("create", help="Create a new environment")
    create.add_argument("name")
    create.add_argument(
        "--preset",
        default="none",
        help="none, data_science, full, or any package set or job role id",
    )
    create.add_argument("--project", action="store_true", help="Also create a project directory")

    sub.add_parser("list", help="List environments")

    show = sub.add_parser("show", help="Show an environment's manifest")
    show.add_argument("name")

    add_set_parser = sub.add_parser("add-set", help="Install a package set into an environment")
    add_set_parser.add_argument("name")
    add_set_parser.add_argument("set_id", metavar="SET")

    add_role_parser = sub.add_parser("add-role", help="Install a job role into an environment")
    add_role_parser.add_argument("name")
    add_role_parser.add_argument("role_id", metavar="ROLE")

    sub.add_parser("sets", help="List package sets")
    sub.add_parser("roles", help="List job roles")

    launch = sub.add_parser("launch", help="Start JupyterLab in an environment")
    launch.add_argument("name")
    launch.add_argument("--dir", dest="work_dir", type=Path, help="Working directory")
    launch.add_argument("--port", type=int, help="JupyterLab port")
    launch.add_argument(
        "--install-missing", action="store_true", help="Install the jupyter set if it is missing"
    )

    resume = sub.add_parser("resume", help="Relaunch the last session")
    resume.add_argument("--port", type=int, help="JupyterLab port")

    sub.add_parser("sessions", help="Show running Jupyter sessions")

    activate = sub.add_parser("activate", help="Print the activation command of an environment")
    activate.add_argument("name")

    sub.add_parser("serve", help="Run the MCP server over stdio")
    return parser


def resolve_config(args: argparse.Namespace) -> Config:
    """Config file and environment, then command line flags on top."""
    config = load_config(args.config)
    updates = {}
    if args.log_level:
        updates["log_level"] = args.log_level
    if args.concurrency is not None:
        updates["concurrency"] = args.concurrency
    return replace(config, **updates).validate() if updates else config


def _show_sets(ctx: AppContext) -> int:
    console = ctx.console
    console.section("PACKAGE SETS")
    if ctx.catalog.is_fallback:
        console.warn(f"Using the built-in fallback catalog ({ctx.catalog.source.reason})")
    for package_set in ctx.catalog.sets():
        console.line(
            f"    {package_set.id:<20} {package_set.name:<32} {len(package_set.packages):>3} packages"
        )
        console.line(f"    {'':<20} {package_set.category}", ColorCodes.GRAY)
    return EXIT_OK


def _show_roles(ctx: AppContext) -> int:
    console = ctx.console
    console.section("JOB ROLES")
    roles = ctx.catalog.roles()
    if not roles:
        console.info("No job roles defined")
    for role in roles:
        count = ctx.catalog.role_package_count(role.id)
        console.line(f"    {role.id:<22} {role.name}", ColorCodes.CYAN)
        console.line(f"    {'':<22} {role.description}", ColorCodes.GRAY)
        console.line(
            f"    {'':<22} {len(role.sets)} sets, {count} packages, "
            f"{role.install_time}, {role.disk_estimate}",
            ColorCodes.GRAY,
        )
    return EXIT_OK


def _show_environments(ctx: AppContext) -> int:
    console = ctx.console
    console.section("ENVIRONMENTS")
    rows = list_environments(ctx.config)
    if not rows:
        console.info(f"No environments in {ctx.config.venv_dir}")
        return EXIT_OK
    console.line(f"    {'NAME':<24} {'PYTHON':<10} {'JUPYTER':<8} SIZE", ColorCodes.GRAY)
    for row in rows:
        jupyter = "yes" if row.has_jupyter else "no"
        console.line(f"    {row.name:<24} {row.runtime_version:<10} {jupyter:<8} {human_size(row.size_bytes)}")
    return EXIT_OK


def _show_manifest(ctx: AppContext, name: str) -> int:
    environment = load_environment(ctx.config, name)
    manifest = ctx.manifests.load(environment)
    console = ctx.console
    console.section(f"ENVIRONMENT: {name}")
    console.line(f"    Path:     {environment.root}")
    console.line(f"    Python:   {environment.runtime_version}")
    console.line(f"    Activate: {environment.activate_command}")
    if manifest is None:
        console.info("No manifest recorded for this environment")
        return EXIT_OK
    console.line(f"    Created:  {manifest.created}")
    console.line(f"    Updated:  {manifest.updated}")
    if manifest.project_path:
        console.line(f"    Project:  {manifest.project_path}")
    console.line(f"    Sets:     {', '.join(manifest.installed_sets) or '-'}")
    console.line(f"    Roles:    {', '.join(manifest.installed_roles) or '-'}")
    console.line(f"    Packages: {len(manifest.installed_packages)}")
    if manifest.install_history:
        console.line()
        console.line("    History:", ColorCodes.GRAY)
        for event in manifest.install_history:
            failed = f", {event.failed} failed" if event.failed else ""
            console.line(
                f"      {event.date}  {event.type.value:<4} {event.name} ({event.count} packages{failed})",
                ColorCodes.GRAY,
            )
    return EXIT_OK


def _show_sessions(ctx: AppContext) -> int:
    console = ctx.console
    console.section("RUNNING JUPYTER SESSIONS")
    sessions = running_sessions(ctx.config.venv_dir)
    if not sessions:
        console.info("No running Jupyter sessions detected.")
        return EXIT_OK
    console.line(f"    {'PID':<8} {'PORT':<7} ENVIRONMENT", ColorCodes.GRAY)
    for session in sessions:
        port = str(session.port) if session.port else "unknown"
        console.line(f"    {session.pid:<8} {port:<7} {session.env_name}")
    return EXIT_OK


async def dispatch(args: argparse.Namespace, ctx: AppContext) -> int:
    match args.command:
        case "create":
            name = sanitize_env_name(args.name)
            if name != args.name:
                ctx.console.info(f"Using environment name '{name}'")
            result = await create_environment(ctx, name, args.preset, args.project)
            return EXIT_FAILURE if result.failed else EXIT_OK
        case "list":
            return _show_environments(ctx)
        case "show":
            return _show_manifest(ctx, args.name)
        case "add-set":
            outcome = await add_set(ctx, args.name, args.set_id)
            if outcome.status == SetStatus.NOT_FOUND or outcome.failed:
                return EXIT_FAILURE
            return EXIT_OK
        case "add-role":
            outcome = await add_role(ctx, args.name, args.role_id)
            return EXIT_FAILURE if outcome.failed else EXIT_OK
        case "sets":
            return _show_sets(ctx)
        case "roles":
            return _show_roles(ctx)
        case "launch":
            environment = load_environment(ctx.config, args.name)
            return await start_jupyter_lab(
                ctx, environment, args.work_dir, args.port, install_missing=args.install_missing
            )
        case "resume":
            return await resume_last_session(ctx, args.port)
        case "sessions":
            return _show_sessions(ctx)
        case "activate":
            environment = load_environment(ctx.config, args.name)
            ctx.console.line(environment.activate_command)
            return EXIT_OK
        case "serve":
            # Deferred so the CLI does not pay for the MCP import
            from stank_venv.server import serve

            await serve(ctx)
            return EXIT_OK
        case _:
            raise ConfigurationError(f"Unknown command: {args.command}")


def run(argv: Optional[List[str]] = None, context_factory: Optional[ContextFactory] = None) -> int:
    """Parse arguments, run one command and return its exit code."""
    args = build_parser().parse_args(argv)
    stream = sys.stderr if args.command == "serve" else sys.stdout
    console = Console(stream=stream, color=False if args.no_color else None)

    # Stderr at WARNING until the configured level and file are known
    configure_logging()
    try:
        config = resolve_config(args)
        configure_logging(config.log_level, config.log_file or default_log_file())
    except (ConfigurationError, ValueError) as e:
        console.err(str(e))
        return EXIT_USAGE

    try:
        ctx = (context_factory or build_context)(config, console)
        if ctx.catalog.is_fallback and args.command not in ("sets", "roles", "serve"):
            console.warn(f"Catalog unavailable, using built-in fallback ({ctx.catalog.source.reason})")
        return asyncio.run(dispatch(args, ctx))
    except KeyboardInterrupt:
        console.end_progress()
        console.warn("Interrupted")
        return EXIT_INTERRUPTED
    except (ConfigurationError, InvalidNameError) as e:
        console.err(str(e))
        return EXIT_USAGE
    except StankVenvError as e:
        log_error(e, {"command": args.command}, logger)
        console.err(str(e))
        return EXIT_FAILURE


def main() -> None:
    sys.exit(run())
