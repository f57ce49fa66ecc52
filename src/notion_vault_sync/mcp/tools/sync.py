"""MCP tool handlers for Notion vault sync.

Defines two tools:

- ``notion_sync`` -- run one sync configuration, or every enabled one.
- ``notion_sync_status`` -- show configurations with their last run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import mcp.types as types

from ...config_loader import load_hierarchical_config
from ...config_schema import SyncDirection, UnifiedConfig, build_config
from ...core.async_utils import run_sync
from ...core.client import NotionClient
from ...sync.engine import build_engine
from ...sync.reporter import format_sync_all, format_sync_report, report_to_json
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="notion_sync",
        description=(
            "Synchronize Notion databases with Markdown folders of the vault. "
            "Runs one named sync configuration, or every enabled one when "
            "'config' is omitted. Never deletes pages or documents."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "config": {
                    "type": "string",
                    "description": "Id or name of a sync configuration",
                },
                "direction": {
                    "type": "string",
                    "enum": [d.value for d in SyncDirection],
                    "description": "Override the configured direction for this run",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="notion_sync_status",
        description=(
            "Show the sync configurations with direction, folder, database, "
            "last sync time and the counts of the last run."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "config": {
                    "type": "string",
                    "description": "Id or name of a sync configuration (default: all)",
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_unified_config() -> UnifiedConfig:
    """Load the unified config from the hierarchical config system."""
    raw = load_hierarchical_config()
    return build_config(raw)


def _format_last_sync(millis: int) -> str:
    if not millis:
        return "never"
    dt = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M UTC")


def _not_found(key: str, unified: UnifiedConfig) -> types.CallToolResult:
    available = [c.name for c in unified.sync.configs]
    return build_error_response(
        "not_found",
        f"Sync configuration '{key}' not found.",
        f"Available configurations: {available}. "
        "Check the sync section of .notion_sync/config.yml.",
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_notion_sync(
    client: NotionClient, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``notion_sync`` tool."""
    key = args.get("config")
    direction = args.get("direction")

    unified = _load_unified_config()
    engine, state = build_engine(client, unified.sync)
    configs = state.apply_to(unified.sync.configs)

    if key:
        config = next((c for c in configs if key in (c.id, c.name)), None)
        if config is None:
            return _not_found(key, unified)
        report = await run_sync(engine.run, config, direction)
        state.record_report(report)
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=format_sync_report(report))],
            structuredContent=report_to_json(report),
        )

    if not configs:
        return build_error_response(
            "configuration_error",
            "No sync configurations defined.",
            "Add configurations to the sync section of .notion_sync/config.yml.",
        )

    result = await run_sync(engine.sync_all, configs, direction)
    for report in result.reports:
        state.record_report(report)
    structured = {
        "reports": [report_to_json(r) for r in result.reports],
        "failures": [f.model_dump() for f in result.failures],
    }
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_all(result))],
        structuredContent=structured,
        isError=not result.ok and not result.reports,
    )


async def _handle_notion_sync_status(
    client: NotionClient, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``notion_sync_status`` tool."""
    key = args.get("config")
    unified = _load_unified_config()
    _, state = build_engine(client, unified.sync)
    configs = state.apply_to(unified.sync.configs)
    if key:
        configs = [c for c in configs if key in (c.id, c.name)]
        if not configs:
            return _not_found(key, unified)

    stored = state.load()["configs"]
    lines = [f"Sync status ({len(configs)} configurations)"]
    entries = []
    for config in configs:
        last_run = (stored.get(config.id) or {}).get("last_run")
        lines.append(
            f"  {config.name} [{config.id}]"
            + ("" if config.enabled else " (disabled)")
        )
        lines.append(f"    Direction: {config.direction.value}")
        lines.append(f"    Folder:    {config.folder}")
        lines.append(f"    Database:  {config.database_id}")
        lines.append(f"    Mappings:  {len(config.field_mappings)}")
        lines.append(f"    Last sync: {_format_last_sync(config.last_sync)}")
        if last_run:
            lines.append(
                f"    Last run:  {last_run.get('created', 0)} created, "
                f"{last_run.get('updated', 0)} updated, "
                f"{last_run.get('failed', 0)} failed, "
                f"{last_run.get('conflicts', 0)} conflicts"
            )
        entries.append(
            {
                "id": config.id,
                "name": config.name,
                "enabled": config.enabled,
                "direction": config.direction.value,
                "folder": config.folder,
                "database_id": config.database_id,
                "field_mappings": len(config.field_mappings),
                "last_sync": config.last_sync,
                "last_run": last_run,
            }
        )

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={
            "conflict_resolution": unified.sync.conflict_resolution,
            "configs": entries,
        },
    )


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=SYNC_TOOLS[0], read_only=False, handler=_handle_notion_sync),
    ToolSpec(tool=SYNC_TOOLS[1], read_only=True, handler=_handle_notion_sync_status),
]
