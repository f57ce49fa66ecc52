"""MCP tool handlers for Notion vault sync.

This package contains MCP tool implementations that wrap the NotionClient
and the sync engine with async handlers and structured error responses.
"""

from .database import DATABASE_SPECS, DATABASE_TOOLS
from .errors import build_error_response, translate_remote_error
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = SYNC_SPECS + DATABASE_SPECS

__all__ = [
    "build_error_response",
    "translate_remote_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # Spec lists
    "ALL_SPECS",
    "SYNC_SPECS",
    "DATABASE_SPECS",
    # Tool lists
    "SYNC_TOOLS",
    "DATABASE_TOOLS",
]
