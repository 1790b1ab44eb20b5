"""MCP server implementation."""
import json
from typing import Any, Dict, List

import mcp.types as types
from mcp.server import stdio
from mcp.server.lowlevel import Server
from mcp.server.models import InitializationOptions

from stank_venv import __version__
from stank_venv.context import AppContext
from stank_venv.environments.environment import (
    add_role,
    add_set,
    create_environment,
    list_environments,
    load_environment,
)
from stank_venv.errors import StankVenvError, log_error
from stank_venv.logging import get_logger
from stank_venv.types import RoleOutcome, SetOutcome

logger = get_logger("server")

SERVER_NAME = "stank-venv"

_ENV_NAME = {"type": "string", "description": "Environment name"}

tools = [
    types.Tool(
        name="venv_list_catalog",
        description="List the package sets and job roles that can be installed",
        inputSchema={"type": "object", "properties": {}},
    ),
    types.Tool(
        name="venv_list_environments",
        description="List virtual environments under the installation root",
        inputSchema={"type": "object", "properties": {}},
    ),
    types.Tool(
        name="venv_create_environment",
        description="Create a virtual environment, optionally installing a preset",
        inputSchema={
            "type": "object",
            "properties": {
                "name": _ENV_NAME,
                "preset": {
                    "type": "string",
                    "description": "none, data_science, full, or a package set or job role id",
                },
                "create_project": {
                    "type": "boolean",
                    "description": "Also create a project directory",
                },
            },
            "required": ["name"],
        },
    ),
    types.Tool(
        name="venv_install_set",
        description="Install a package set into an existing environment",
        inputSchema={
            "type": "object",
            "properties": {
                "name": _ENV_NAME,
                "set_id": {"type": "string", "description": "Package set identifier"},
            },
            "required": ["name", "set_id"],
        },
    ),
    types.Tool(
        name="venv_install_role",
        description="Install every package set of a job role into an existing environment",
        inputSchema={
            "type": "object",
            "properties": {
                "name": _ENV_NAME,
                "role_id": {"type": "string", "description": "Job role identifier"},
            },
            "required": ["name", "role_id"],
        },
    ),
    types.Tool(
        name="venv_show_manifest",
        description="Show what has been installed into an environment",
        inputSchema={
            "type": "object",
            "properties": {"name": _ENV_NAME},
            "required": ["name"],
        },
    ),
]


def _set_data(outcome: SetOutcome) -> Dict[str, Any]:
    return {
        "set_id": outcome.set_id,
        "status": outcome.status.value,
        "succeeded": outcome.succeeded,
        "failed": outcome.failed,
        "failed_packages": outcome.failed_packages,
        "elapsed": round(outcome.elapsed, 2),
    }


def _role_data(outcome: RoleOutcome) -> Dict[str, Any]:
    return {
        "role_id": outcome.role_id,
        "package_count": outcome.package_count,
        "succeeded": outcome.succeeded,
        "failed": outcome.failed,
        "sets": [_set_data(s) for s in outcome.set_outcomes],
    }


async def handle_tool(ctx: AppContext, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Run one tool and return the data of a successful call."""
    match name:
        case "venv_list_catalog":
            return {
                "fallback": ctx.catalog.is_fallback,
                "package_sets": [
                    {"id": s.id, "name": s.name, "category": s.category, "packages": list(s.packages)}
                    for s in ctx.catalog.sets()
                ],
                "job_roles": [
                    {
                        "id": r.id,
                        "name": r.name,
                        "description": r.description,
                        "sets": list(r.sets),
                        "package_count": ctx.catalog.role_package_count(r.id),
                    }
                    for r in ctx.catalog.roles()
                ],
            }

        case "venv_list_environments":
            return {
                "environments": [
                    {
                        "name": row.name,
                        "path": str(row.root),
                        "runtime_version": row.runtime_version,
                        "has_jupyter": row.has_jupyter,
                        "size_bytes": row.size_bytes,
                    }
                    for row in list_environments(ctx.config)
                ]
            }

        case "venv_create_environment":
            result = await create_environment(
                ctx,
                arguments["name"],
                arguments.get("preset") or "none",
                bool(arguments.get("create_project", False)),
            )
            return {
                "name": result.environment.name,
                "path": str(result.environment.root),
                "runtime_version": result.environment.runtime_version,
                "activate": result.environment.activate_command,
                "project_dir": str(result.project_dir) if result.project_dir else None,
                "installs_skipped": result.installs_skipped,
                "sets": [_set_data(s) for s in result.set_outcomes],
                "failed": result.failed,
            }

        case "venv_install_set":
            return _set_data(await add_set(ctx, arguments["name"], arguments["set_id"]))

        case "venv_install_role":
            return _role_data(await add_role(ctx, arguments["name"], arguments["role_id"]))

        case "venv_show_manifest":
            environment = load_environment(ctx.config, arguments["name"])
            manifest = ctx.manifests.load(environment)
            return {
                "name": environment.name,
                "path": str(environment.root),
                "manifest": manifest.to_dict() if manifest else None,
            }

    raise ValueError(f"Unknown tool: {name}")


async def call_tool_json(ctx: AppContext, name: str, arguments: Dict[str, Any]) -> str:
    try:
        result = {"success": True, "data": await handle_tool(ctx, name, arguments or {})}
    except StankVenvError as e:
        log_error(e, {"tool": name}, logger)
        error = e.to_error_data()
        result = {"success": False, "error": error.message, "code": error.code, "details": error.data}
    except (KeyError, ValueError) as e:
        logger.warning("tool_call_rejected", tool=name, error=str(e))
        result = {"success": False, "error": f"Invalid request: {e}"}
    return json.dumps(result)


async def init_server(ctx: AppContext) -> Server:
    logger.info("tools_registered", tools=[t.name for t in tools])

    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        logger.debug("tools_requested")
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
        logger.debug("tool_call_received", tool=name, arguments=arguments)
        return [types.TextContent(type="text", text=await call_tool_json(ctx, name, arguments))]

    return server


async def serve(ctx: AppContext) -> None:
    logger.info("server_starting")
    server = await init_server(ctx)
    async with stdio.stdio_server() as (read_stream, write_stream):
        init_options = InitializationOptions(
            server_name=SERVER_NAME,
            server_version=__version__,
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(listChanged=False),
                logging=types.LoggingCapability(),
            ),
        )
        await server.run(read_stream, write_stream, init_options)
