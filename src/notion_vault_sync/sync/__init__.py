"""Notion database <-> Markdown vault sync engine.

Public API for synchronising the pages of a Notion database with the
Markdown documents of one vault folder.

Architecture
------------
A document is linked to a page by the ``notionId`` front-matter key. Pull
writes every page to its linked (or title-derived) document, push writes
every document to its linked page or creates one, and bidirectional sync
compares linked pairs field by field and lets the configured conflict
policy pick a winner. Nothing is deleted on either side.

Modules:

- ``engine``      -- ``SyncEngine``: runs one or all sync configurations.
- ``properties``  -- ``PropertyCodec``: Notion properties <-> front-matter.
- ``frontmatter`` -- Parse and serialize front-matter documents.
- ``mapper``      -- ``PathMapper``: page title to vault path.
- ``detector``    -- ``ChangeDetector``: compare a linked pair.
- ``resolver``    -- Conflict policies (notion-wins, obsidian-wins,
  newer-wins, manual).
- ``models``      -- ``SyncAction``, ``LocalDocument``, ``SyncResult``,
  ``SyncReport``, ``SyncAllResult`` and friends.
- ``state``       -- ``SyncState``: persisted ``last_sync`` and run counts.
- ``reporter``    -- Human-readable and JSON report formatting.
- ``scheduler``   -- ``AutoSyncScheduler``: periodic runs.

Usage example
-------------
::

    from notion_vault_sync.config_schema import SyncConfig
    from notion_vault_sync.sync import SyncEngine, SyncState, format_sync_report
    from notion_vault_sync.vault import VaultStore

    state = SyncState(".notion_sync")
    engine = SyncEngine(
        client=notion_client,        # NotionClient instance
        store=VaultStore("~/vault"),
        conflict_resolution="newer-wins",
        persist=state.persist_config,
    )

    config = SyncConfig(
        id="books",
        name="Books",
        folder="Reading",
        database_id="0123456789abcdef0123456789abcdef",
        direction="pull",
    )
    report = engine.run(config)
    print(format_sync_report(report))
"""

from .engine import SyncEngine, build_engine
from .mapper import PathMapper
from .models import (
    ConflictInfo,
    ConflictOutcome,
    LocalDocument,
    RunSummary,
    SyncAction,
    SyncAllResult,
    SyncFailure,
    SyncReport,
    SyncResult,
)
from .properties import PropertyCodec
from .reporter import (
    format_conflict_diff,
    format_sync_all,
    format_sync_report,
    report_to_json,
)
from .scheduler import AutoSyncScheduler
from .state import SyncState

__all__ = [
    "AutoSyncScheduler",
    "ConflictInfo",
    "ConflictOutcome",
    "LocalDocument",
    "PathMapper",
    "PropertyCodec",
    "RunSummary",
    "SyncAction",
    "SyncAllResult",
    "SyncEngine",
    "SyncFailure",
    "SyncReport",
    "SyncResult",
    "SyncState",
    "build_engine",
    "format_conflict_diff",
    "format_sync_all",
    "format_sync_report",
    "report_to_json",
]
