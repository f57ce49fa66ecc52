"""Unified configuration schema for notion_vault_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the Notion connection, the sync configurations and logging.

Usage:
    from notion_vault_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    for sync_config in unified.sync.configs:
        ...
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .validators import (
    normalize_database_id,
    validate_folder_path,
    validate_frontmatter_key,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SyncDirection(str, Enum):
    """Which side of a sync configuration is written to."""

    PULL = "pull"
    PUSH = "push"
    BIDIRECTIONAL = "bidirectional"


_DIRECTION_ALIASES: dict[str, str] = {
    "notion-to-obsidian": "pull",
    "remote-to-local": "pull",
    "obsidian-to-notion": "push",
    "local-to-remote": "push",
    "both": "bidirectional",
}


def parse_direction(value: str | SyncDirection) -> SyncDirection:
    """Map a direction name or alias to a ``SyncDirection``.

    Raises:
        ValueError: If the direction is not recognised.
    """
    if isinstance(value, SyncDirection):
        return value
    key = value.strip().lower()
    try:
        return SyncDirection(_DIRECTION_ALIASES.get(key, key))
    except ValueError:
        valid = sorted([d.value for d in SyncDirection] + list(_DIRECTION_ALIASES))
        raise ValueError(
            f"Unknown sync direction '{value}'. Valid directions: {valid}"
        ) from None


class SyncMode(str, Enum):
    """How a sync configuration is triggered."""

    MANUAL = "manual"
    AUTO = "auto"
    SCHEDULED = "scheduled"


class FieldType(str, Enum):
    """Semantic type of a mapped front-matter field."""

    TEXT = "text"
    LIST = "list"
    NUMBER = "number"
    CHECKBOX = "checkbox"
    DATE = "date"
    DATE_TIME = "date-time"


_FIELD_TYPE_ALIASES: dict[str, str] = {
    "date & time": "date-time",
    "datetime": "date-time",
}

CONFLICT_POLICIES: tuple[str, ...] = (
    "notion-wins",
    "obsidian-wins",
    "newer-wins",
    "manual",
)

_CONFLICT_POLICY_ALIASES: dict[str, str] = {
    "remote-wins": "notion-wins",
    "local-wins": "obsidian-wins",
}


def normalize_conflict_policy(policy: str) -> str:
    """Map a conflict policy name or alias to its canonical name.

    Raises:
        ValueError: If the policy is not recognised.
    """
    key = policy.strip().lower()
    key = _CONFLICT_POLICY_ALIASES.get(key, key)
    if key not in CONFLICT_POLICIES:
        raise ValueError(
            f"Unknown conflict resolution '{policy}'. "
            f"Valid policies: {sorted(CONFLICT_POLICIES + tuple(_CONFLICT_POLICY_ALIASES))}"
        )
    return key


# ---------------------------------------------------------------------------
# Sync configuration models
# ---------------------------------------------------------------------------


class FieldMapping(BaseModel):
    """Mapping between one Notion property and one front-matter key.

    ``type`` is kept as a plain string so an unknown type coming from an
    older config file is reported and skipped at conversion time instead of
    rejecting the whole configuration.
    """

    remote_property: str = Field(
        description="Notion property name (case-sensitive)"
    )
    local_property: str = Field(description="Front-matter key")
    type: str = Field(
        default=FieldType.TEXT.value,
        description="text, list, number, checkbox, date or date-time",
    )

    model_config = {"frozen": True}

    @field_validator("local_property")
    @classmethod
    def _check_local_property(cls, value: str) -> str:
        is_valid, message = validate_frontmatter_key(value)
        if not is_valid:
            raise ValueError(message)
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: object) -> object:
        if isinstance(value, FieldType):
            return value.value
        if isinstance(value, str):
            key = value.strip().lower()
            return _FIELD_TYPE_ALIASES.get(key, key)
        return value


class SyncConfig(BaseModel):
    """One pairing of a Notion database with a vault folder.

    Instances are frozen: a sync run returns an updated copy (with
    ``last_sync`` stamped) instead of mutating the one it was given.

    Attributes:
        id: Stable identifier used for persisted state.
        name: Display name.
        folder: Vault-relative folder holding the documents.
        database_id: Notion database id.
        direction: pull, push or bidirectional.
        mode: manual, auto or scheduled.
        field_mappings: Ordered mappings. Empty means auto-convert every
            property, remote to local only.
        last_sync: Epoch milliseconds of the last completed run, 0 if never.
        enabled: Disabled configurations are skipped by ``sync_all``.
    """

    id: str
    name: str
    folder: str = ""
    database_id: str = ""
    direction: SyncDirection = SyncDirection.PULL
    mode: SyncMode = SyncMode.MANUAL
    field_mappings: list[FieldMapping] = Field(default_factory=list)
    last_sync: int = Field(default=0, ge=0)
    enabled: bool = True

    model_config = {"frozen": True}

    @field_validator("direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value: object) -> object:
        if isinstance(value, str):
            key = value.strip().lower()
            return _DIRECTION_ALIASES.get(key, key)
        return value

    @field_validator("database_id", mode="before")
    @classmethod
    def _normalize_database_id(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_database_id(value)
        return value

    @field_validator("folder")
    @classmethod
    def _check_folder(cls, value: str) -> str:
        value = value.strip().strip("/")
        if value:
            is_valid, message = validate_folder_path(value)
            if not is_valid:
                raise ValueError(message)
        return value

    @field_validator("field_mappings")
    @classmethod
    def _check_mappings(
        cls, value: list[FieldMapping]
    ) -> list[FieldMapping]:
        seen: set[str] = set()
        for mapping in value:
            if mapping.local_property in seen:
                raise ValueError(
                    f"Front-matter key '{mapping.local_property}' is mapped more than once"
                )
            seen.add(mapping.local_property)
        return value


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class NotionConfig(BaseModel):
    """Notion API connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    token: str | None = Field(
        default=None, description="Notion integration token"
    )
    base_url: str = Field(
        default="https://api.notion.com/v1",
        description="Notion API base URL",
    )
    api_version: str = Field(
        default="2022-06-28", description="Notion-Version header value"
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        description="Read timeout in seconds for API requests",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for rate-limited (HTTP 429) requests (0-10)",
    )
    page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Page size for paginated queries (1-100)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Engine-wide sync settings plus the list of sync configurations."""

    vault_root: str = Field(
        default=".", description="Root directory of the Markdown vault"
    )
    state_dir: str = Field(
        default=".notion_sync",
        description="Directory holding the persisted sync state",
    )
    conflict_resolution: str = Field(
        default="newer-wins",
        description="notion-wins, obsidian-wins, newer-wins or manual",
    )
    auto_sync: bool = Field(
        default=False, description="Run every configuration periodically"
    )
    sync_interval: int = Field(
        default=30,
        ge=1,
        description="Minutes between automatic runs",
    )
    configs: list[SyncConfig] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("conflict_resolution")
    @classmethod
    def _check_policy(cls, value: str) -> str:
        return normalize_conflict_policy(value)

    @field_validator("configs")
    @classmethod
    def _check_unique_ids(cls, value: list[SyncConfig]) -> list[SyncConfig]:
        ids = [c.id for c in value]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(
                f"Duplicate sync configuration ids: {duplicates}"
            )
        for config in value:
            if not config.field_mappings and config.direction != SyncDirection.PULL:
                logger.warning(
                    "Sync configuration '%s' has no field mappings; "
                    "only pull is possible",
                    config.name,
                )
        return value

    def get_config(self, key: str) -> SyncConfig | None:
        """Return the configuration whose id or name equals *key*."""
        for config in self.configs:
            if key in (config.id, config.name):
                return config
        return None


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    notion: NotionConfig = Field(default_factory=NotionConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
