"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config
from ..core.async_utils import run_sync
from ..core.client import NotionClient

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Create NotionClient and validate the token
    - Fail fast if Notion rejects the token or is unreachable

    On shutdown:
    - Log shutdown message

    Args:
        config_overrides: Optional dict with config values from CLI (token, base_url, debug)

    Yields:
        Dict with 'client' key containing the initialized NotionClient

    Raises:
        RuntimeError: If configuration is invalid or the token check fails.
    """
    logger.info("MCP server starting...")
    _stderr_print("Notion Vault Sync MCP server starting...")

    try:
        load_dotenv()

        yaml_fallbacks: dict[str, Any] | None = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            config_path = config_files[0]
            raw = load_hierarchical_config()
            unified = build_config(raw)
            yaml_fallbacks = {
                k: v
                for k, v in unified.notion.model_dump().items()
                if v is not None
            }
            sources.append(f"config file: {config_path}")

        overrides = config_overrides or {}
        config = load_config(
            token=overrides.get("token"),
            base_url=overrides.get("base_url"),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Notion API: %s", config.base_url)
        _stderr_print(f"  Notion API: {config.base_url}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure NOTION_TOKEN is set.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure NOTION_TOKEN is set."
        ) from e

    logger.info("Validating Notion token...")
    _stderr_print("  Validating Notion token...")
    try:
        client = NotionClient(config)
        message = await run_sync(client.validate_token)
        logger.info(message)
        _stderr_print(f"  {message}")
        _stderr_print(
            "Server ready. Waiting for MCP client connection..."
        )
    except Exception as e:
        logger.error("Failed to connect to Notion: %s", e)
        _stderr_print("ERROR: Notion connection failed.")
        _stderr_print(f"  {e}")
        _stderr_print("  Check NOTION_TOKEN and network access to the Notion API.")
        raise RuntimeError(
            f"Notion connection failed: {e}. Check NOTION_TOKEN."
        ) from e

    yield {"client": client}

    logger.info("MCP server shutting down")
    _stderr_print("Notion Vault Sync MCP server shutting down.")
