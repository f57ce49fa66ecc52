"""MCP Server for Notion vault sync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents run sync configurations and inspect Notion databases.

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
from ..core.client import NotionClient
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

SERVER_NAME = "notion-vault-sync"

# Initialize server instance
server = Server(SERVER_NAME)

# Global client instance (initialized in lifespan)
_notion_client: NotionClient | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(
    client: NotionClient, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test the Notion token."""
    try:
        message = await run_sync(client.validate_token)
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Notion Vault Sync server connected. {message}",
                )
            ]
        )
    except Exception as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Notion connection failed: {e}. Check NOTION_TOKEN.",
                )
            ],
            isError=True,
        )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test Notion connectivity with the configured integration token",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    read_only=True,
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_client() -> NotionClient:
    """Get the global NotionClient instance.

    Raises:
        RuntimeError: If client is not initialized
    """
    if _notion_client is None:
        raise RuntimeError(
            "NotionClient not initialized. Server lifespan not started."
        )
    return _notion_client


def set_client(client: NotionClient | None) -> None:
    """Set the global NotionClient instance, or None to clear it."""
    global _notion_client
    _notion_client = client


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set the global ToolRegistry instance, or None to clear it."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List all registered tools from the ToolRegistry."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    client = get_client()
    try:
        return await get_registry().call_tool(name, arguments, client)
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


def build_registry(read_only: bool = False) -> ToolRegistry:
    """Registry with the ping tool and every sync/database tool."""
    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), validates the
    Notion token via the lifespan manager, and serves JSON-RPC over stdio.

    Args:
        config_overrides: Optional dict with config values to override
            (token, base_url, debug, log_file, read_only)
    """
    overrides = config_overrides or {}

    # CRITICAL: must run BEFORE stdio_server so nothing reaches stdout
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    read_only = bool(overrides.get("read_only", False))
    registry = build_registry(read_only=read_only)
    if read_only:
        print(
            f"Read-only mode ({registry.tool_count()} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_client() is called here rather than in the lifespan so that
    # running this file as __main__ updates this module's globals.
    async with server_lifespan(config_overrides=config_overrides) as ctx:
        set_client(ctx["client"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_client(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Notion Vault Sync MCP server - sync Notion databases with a Markdown vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (.env, NOTION_TOKEN or .notion_sync/config.yml)
  notion-vault-sync-mcp

  # Only expose tools that never write
  notion-vault-sync-mcp --read-only

  # Custom log file location
  notion-vault-sync-mcp --log-file /var/log/notion-vault-sync.log

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )
    parser.add_argument(
        "--token",
        help="Override Notion integration token (visible in process list -- prefer NOTION_TOKEN)",
    )
    parser.add_argument(
        "--base-url",
        help="Override Notion API base URL",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Expose only tools that never write to Notion or the vault",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"notion-vault-sync-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides: dict = {}
    if args.token:
        config_overrides["token"] = args.token
    if args.base_url:
        config_overrides["base_url"] = args.base_url
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.read_only:
        config_overrides["read_only"] = True

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
