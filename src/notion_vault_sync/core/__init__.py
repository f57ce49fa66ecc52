"""Core Notion client functionality shared between CLI and MCP server."""

from .async_utils import run_sync
from .client import NotionClient, RemoteClient
from .models import DatabaseInfo, RemoteRecord

__all__ = [
    "DatabaseInfo",
    "NotionClient",
    "RemoteClient",
    "RemoteRecord",
    "run_sync",
]
