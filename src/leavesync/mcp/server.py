"""MCP server for the shared leave schedule using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents read and edit the shared leave and duty schedule, and save it
with optimistic-concurrency conflict detection.

Transport: stdio (for desktop MCP clients)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..logger import DEFAULT_LOG_FILE, setup_logging
from ..session import SchedulingSession
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("leavesync")

# Global session instance (initialized in main)
_session: SchedulingSession | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, no capability required)
# ---------------------------------------------------------------------------


async def _handle_ping(
    session: SchedulingSession, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test document store connectivity."""
    client = session.client
    try:
        raw = await run_sync(client.store.fetch_latest, client.key)
    except Exception as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Document store unreachable: {e}. Check LEAVESYNC_STORE_URL.",
                )
            ],
            isError=True,
        )
    state = "found" if raw is not None else "not created yet"
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"LeaveSync MCP server {__version__} connected. Shared document {state}.",
            )
        ]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test document store connectivity and report the server version",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_session() -> SchedulingSession:
    """Get the global SchedulingSession instance.

    Raises:
        RuntimeError: If the session is not initialized
    """
    if _session is None:
        raise RuntimeError(
            "SchedulingSession not initialized. Server lifespan not started."
        )
    return _session


def set_session(session: SchedulingSession | None) -> None:
    global _session
    _session = session


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """Return all registered (and permitted) tools from the ToolRegistry."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    session = get_session()
    try:
        return await get_registry().call_tool(name, arguments, session)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Build the ToolRegistry, filtered by *permissions_file* when given."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d capabilities from %s",
            len(allowed_permissions),
            permissions_file,
        )
    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging goes to a file only (never stdout, which carries the protocol).

    Args:
        config_overrides: Optional dict with config values to override
            (store_url, store_path, sync_mode, insecure, debug, log_file,
            permissions_file)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server so nothing reaches stdout.
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    set_registry(build_registry(overrides.get("permissions_file")))

    # set_session() is called here rather than in the lifespan so that
    # `python -m leavesync.mcp.server` updates this module, not a re-import.
    async with server_lifespan(config_overrides=config_overrides) as ctx:
        set_session(ctx["session"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="leavesync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_session(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leavesync-mcp",
        description="LeaveSync MCP Server - edit the shared leave schedule over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .leavesync/config.yml)
  leavesync-mcp

  # Use a hosted blob endpoint
  leavesync-mcp --store-url https://example.com/api/data

  # Local file store with polling and auto-save
  leavesync-mcp --store-path ./shared --sync-mode auto

  # Read-only deployment
  leavesync-mcp --permissions-file read-only.permissions

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument(
        "--store-url",
        help="HTTP endpoint of the shared document (overrides LEAVESYNC_STORE_URL)",
    )
    parser.add_argument(
        "--store-path",
        help="Directory of the file-backed store, used when no URL is set",
    )
    parser.add_argument(
        "--sync-mode",
        choices=["manual", "auto"],
        help="manual (explicit save/refresh) or auto (polling + auto-save)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to a file listing allowed capabilities, one per line "
        "(DOC_VIEW, DOC_EDIT, SYNC, USER_ADMIN, AUDIT_VIEW). "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"leavesync-mcp version {__version__}",
    )
    return parser


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = build_parser().parse_args()

    config_overrides = {
        key: value
        for key, value in (
            ("store_url", args.store_url),
            ("store_path", args.store_path),
            ("sync_mode", args.sync_mode),
            ("insecure", args.insecure),
            ("debug", args.debug),
            ("log_file", args.log_file),
            ("permissions_file", args.permissions_file),
        )
        if value
    }

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
