"""Shared pytest fixtures for notion-vault-sync tests."""

from __future__ import annotations

from typing import Any

import pytest
from dotenv import load_dotenv

from notion_vault_sync.config import Config
from notion_vault_sync.config_schema import SyncConfig
from notion_vault_sync.core.models import RemoteRecord
from notion_vault_sync.exceptions import NotFoundError, RemoteAPIError
from notion_vault_sync.vault import VaultStore

load_dotenv()

DATABASE_ID = "0123456789abcdef0123456789abcdef"


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require the live Notion API",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring the live Notion API"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Notion payload builders
# ---------------------------------------------------------------------------


def rich(text: str) -> list[dict[str, Any]]:
    """Rich-text array holding one plain text run."""
    return [{"type": "text", "text": {"content": text}, "plain_text": text}]


def title_prop(text: str) -> dict[str, Any]:
    return {"type": "title", "title": rich(text)}


def text_prop(text: str) -> dict[str, Any]:
    return {"type": "rich_text", "rich_text": rich(text)}


def make_record(
    record_id: str,
    title: str | None = "Dune",
    content: str = "",
    last_modified: str = "2026-01-01T00:00:00.000Z",
    **extra: dict[str, Any],
) -> RemoteRecord:
    """RemoteRecord with a ``Name`` title property plus *extra* properties."""
    properties: dict[str, Any] = {}
    if title is not None:
        properties["Name"] = title_prop(title)
    properties.update(extra)
    return RemoteRecord(
        id=record_id,
        properties=properties,
        content=content,
        last_modified=last_modified,
    )


class FakeNotionClient:
    """In-memory ``RemoteClient`` for engine tests.

    Created pages are stored as records so a later snapshot sees them.
    """

    def __init__(
        self,
        records: list[RemoteRecord] | None = None,
        schema: dict[str, str] | None = None,
        titles: dict[str, str] | None = None,
    ) -> None:
        self.records: dict[str, RemoteRecord] = {
            r.id: r for r in records or []
        }
        self.schema = schema or {}
        self.titles = titles or {}
        self.fail_listing: Exception | None = None
        self.fail_updates: set[str] = set()
        self.created: list[tuple[str, dict, str]] = []
        self.updated: list[tuple[str, dict, str | None]] = []
        self.title_lookups: list[str] = []
        self._next_id = 0

    def list_collection_records(self, collection_id: str) -> list[RemoteRecord]:
        if self.fail_listing is not None:
            raise self.fail_listing
        return list(self.records.values())

    def get_record_schema(self, collection_id: str) -> dict[str, str]:
        return dict(self.schema)

    def resolve_record_title(self, record_id: str) -> str | None:
        self.title_lookups.append(record_id)
        return self.titles.get(record_id)

    def create_record(
        self, collection_id: str, properties: dict, body: str
    ) -> str:
        self._next_id += 1
        new_id = f"{self._next_id:08d}-new-page"
        self.created.append((collection_id, properties, body))
        self.records[new_id] = RemoteRecord(
            id=new_id,
            properties=properties,
            content=body,
            last_modified="2026-01-01T00:00:00.000Z",
        )
        return new_id

    def update_record(
        self, record_id: str, properties: dict, body: str | None = None
    ) -> None:
        if record_id in self.fail_updates:
            raise RemoteAPIError(f"update of {record_id} failed", 500)
        if record_id not in self.records:
            raise NotFoundError(f"Not found: {record_id}", 404)
        self.updated.append((record_id, properties, body))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config():
    """Connection settings for a NotionClient under test."""
    return Config(
        token="secret_test_token_1234567890",
        base_url="https://api.notion.test/v1",
        api_version="2022-06-28",
        timeout=5.0,
        max_retries=2,
        page_size=2,
    )


@pytest.fixture
def fake_client():
    return FakeNotionClient()


@pytest.fixture
def vault(tmp_path):
    """Empty vault rooted in a temp directory."""
    root = tmp_path / "vault"
    root.mkdir()
    return VaultStore(root)


@pytest.fixture
def sync_config():
    """Factory fixture for SyncConfig instances."""

    def _make(**overrides: Any) -> SyncConfig:
        defaults: dict[str, Any] = {
            "id": "books",
            "name": "Books",
            "folder": "Reading",
            "database_id": DATABASE_ID,
            "direction": "pull",
        }
        defaults.update(overrides)
        return SyncConfig(**defaults)

    return _make
