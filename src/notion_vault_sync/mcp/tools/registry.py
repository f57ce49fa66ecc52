"""ToolSpec and ToolRegistry for MCP tool dispatch.

This module provides a centralized registry for MCP tools that supports
a read-only mode, enabling operators to expose only tools that never write
to Notion or the vault.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, a read-only flag,
  and an async handler with standardized signature (client, args) -> CallToolResult.
- ToolRegistry: Filters specs at construction time, then provides
  list_tools() and call_tool() dispatch with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...core.client import NotionClient
from ...exceptions import ConfigurationError, RemoteAPIError, SyncRunError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        read_only: True if the tool never writes to Notion or the vault.
        handler: Async handler with signature (client, args) -> CallToolResult.
    """

    tool: types.Tool
    read_only: bool
    handler: Callable[[NotionClient, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs.

    If read_only is True, only specs flagged read-only are registered.
    """

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if not read_only or spec.read_only:
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        """Return number of registered tools."""
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        client: NotionClient,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Provides centralized error handling for Notion API errors, sync
        configuration errors, validation errors and unexpected exceptions,
        translating them into structured CallToolResult responses with
        corrective actions.

        Args:
            name: Tool name to invoke.
            arguments: Tool arguments (may be None).
            client: NotionClient instance.

        Returns:
            CallToolResult from the handler.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_remote_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(client, args)
        except RemoteAPIError as e:
            logger.warning("Notion API error in %s: %s", name, e)
            return translate_remote_error(e)
        except ConfigurationError as e:
            return build_error_response(
                "configuration_error",
                str(e),
                "Fix the sync configuration in .notion_sync/config.yml and retry.",
            )
        except SyncRunError as e:
            return build_error_response(
                "sync_failed",
                str(e),
                "Check that the database is shared with the integration, then retry.",
            )
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry later.",
            )
