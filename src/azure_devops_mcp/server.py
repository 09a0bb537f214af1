"""MCP server wiring for azure-devops-mcp.

Lists the tools and resources, verifies the organization connection at start-up, and
hands every tool call to the dispatch layer.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

try:
    from mcp.server import Server
    from mcp.types import Resource, TextContent, Tool
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from . import __version__
from .ado_client import RequestBudget
from .auth import verify_connection
from .errors import SafeError, format_error
from .status import PULL_REQUEST_STATUS_NAMES, THREAD_STATUS_NAMES
from .tools import TOOL_METADATA, dispatch_tool, initialize_runtime_from_env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

SERVER_NAME = "azure-devops-mcp"
STATUS_URI = "azure-devops-mcp://server-status"
CAPABILITIES_URI = "azure-devops-mcp://capabilities"

server = Server(SERVER_NAME)


def _tools() -> list[Tool]:
    return [
        Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
        for name, meta in TOOL_METADATA.items()
    ]


def _resources() -> list[Resource]:
    return [
        Resource(
            uri=STATUS_URI,
            name="Server Status",
            description="Non-secret organization binding and limits",
        ),
        Resource(
            uri=CAPABILITIES_URI,
            name="Capabilities",
            description="Available tools and accepted status values",
        ),
    ]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    tools = _tools()
    logger.info("Listed %s tools", len(tools))
    return tools


# Arguments are validated by the dispatch layer.
@server.call_tool(validate_input=False)
async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
    """Dispatch one tool call; the reply is always a single text item."""
    logger.info("Tool called: %s", name)

    try:
        response = await dispatch_tool(name, arguments)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.error("Tool %s failed: %s", name, exc)
        return [TextContent(type="text", text=format_error(exc))]

    return [TextContent(type="text", text=item["text"]) for item in response["content"]]


@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return _resources()


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Serve the server-status and capabilities documents as JSON."""
    uri_s = uri if isinstance(uri, str) else str(uri)

    if uri_s == CAPABILITIES_URI:
        caps = {
            "server": SERVER_NAME,
            "version": __version__,
            "tools": sorted(TOOL_METADATA.keys()),
            "pull_request_statuses": list(PULL_REQUEST_STATUS_NAMES),
            "thread_statuses": list(THREAD_STATUS_NAMES),
        }
        return json.dumps(caps, indent=2)

    if uri_s == STATUS_URI:
        status: dict[str, Any] = {
            "server": SERVER_NAME,
            "version": __version__,
            "tools_available": len(TOOL_METADATA),
            "configured": False,
        }
        try:
            runtime = initialize_runtime_from_env()
            status["configured"] = True
            status["organization_url"] = runtime.config.organization_url
            status["api_version"] = runtime.config.api_version
            status["limits"] = {
                "total_timeout_s": runtime.config.limits.total_timeout_s,
                "connect_timeout_s": runtime.config.limits.connect_timeout_s,
                "read_timeout_s": runtime.config.limits.read_timeout_s,
            }
            status["audit"] = {"file_sink_enabled": runtime.config.audit_log_path is not None}
        except SafeError as exc:
            status["error"] = exc.message

        return json.dumps(status, indent=2)

    return json.dumps({"ok": False, "code": "NotFound", "message": "Unknown resource"}, indent=2)


async def run_server() -> None:
    """Run the server over stdio."""
    # Fail fast on invalid/missing host configuration or a rejected token.
    try:
        runtime = initialize_runtime_from_env()
        await verify_connection(
            runtime.connection.client,
            budget=RequestBudget(total_timeout_s=runtime.config.limits.total_timeout_s),
        )
    except SafeError as exc:
        logger.error("Startup error: %s", exc.message)
        raise

    logger.info("Serving %s as %s v%s", runtime.config.organization_url, SERVER_NAME, __version__)

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def test_server() -> None:
    """Build every Tool and Resource model and report the counts."""
    tools = _tools()
    resources = _resources()
    print(f"{SERVER_NAME} {__version__}: {len(tools)} tools, {len(resources)} resources", file=sys.stderr)
