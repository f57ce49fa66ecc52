"""MCP tool handlers for inspecting Notion databases.

Defines two read-only tools:

- ``notion_list_databases`` -- databases shared with the integration.
- ``notion_database_schema`` -- property types of a database, with a
  suggested field mapping for each property.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...core.client import NotionClient
from ...sync.properties import field_type_for, suggest_local_property
from ...validators import normalize_database_id, validate_database_id
from .registry import ToolSpec

logger = logging.getLogger(__name__)

_READ_ONLY = types.ToolAnnotations(
    readOnlyHint=True,
    destructiveHint=False,
    idempotentHint=True,
    openWorldHint=True,
)


DATABASE_TOOLS: list[types.Tool] = [
    types.Tool(
        name="notion_list_databases",
        description="List the Notion databases shared with the integration.",
        annotations=_READ_ONLY,
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="notion_database_schema",
        description=(
            "Show the properties of a Notion database with their types and "
            "a suggested front-matter key and mapping type for each."
        ),
        annotations=_READ_ONLY,
        inputSchema={
            "type": "object",
            "properties": {
                "database_id": {
                    "type": "string",
                    "description": "Notion database id (dashes optional)",
                },
            },
            "required": ["database_id"],
        },
    ),
]


async def _handle_list_databases(
    client: NotionClient, args: dict[str, Any]
) -> types.CallToolResult:
    databases = await run_sync(client.list_databases)
    if databases:
        lines = [f"{len(databases)} databases:"]
        lines.extend(f"  {db.title} ({db.id})" for db in databases)
    else:
        lines = ["No databases are shared with the integration."]
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={"databases": [db.model_dump() for db in databases]},
    )


async def _handle_database_schema(
    client: NotionClient, args: dict[str, Any]
) -> types.CallToolResult:
    database_id = normalize_database_id(args.get("database_id") or "")
    is_valid, message = validate_database_id(database_id)
    if not is_valid:
        raise ValueError(message)

    title = await run_sync(client.validate_database, database_id)
    schema = await run_sync(client.get_record_schema, database_id)

    properties = [
        {
            "name": name,
            "type": notion_type,
            "suggested_local_property": suggest_local_property(name),
            "suggested_type": field_type_for(notion_type),
        }
        for name, notion_type in sorted(schema.items())
    ]
    lines = [f"Database '{title}' ({database_id}): {len(properties)} properties"]
    for prop in properties:
        lines.append(
            f"  {prop['name']} ({prop['type']}) -> "
            f"{prop['suggested_local_property']} [{prop['suggested_type']}]"
        )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={
            "database_id": database_id,
            "title": title,
            "properties": properties,
        },
    )


DATABASE_SPECS: list[ToolSpec] = [
    ToolSpec(tool=DATABASE_TOOLS[0], read_only=True, handler=_handle_list_databases),
    ToolSpec(tool=DATABASE_TOOLS[1], read_only=True, handler=_handle_database_schema),
]
