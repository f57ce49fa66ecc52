"""Pydantic models for the Notion vault sync engine.

Defines the data contracts shared by the sync modules:

- ``SyncAction``: Enum of per-item sync operations.
- ``ConflictOutcome``: Verdict of the conflict resolver for a linked pair.
- ``LocalDocument``: A parsed vault document.
- ``ChangeSet`` / ``ConflictInfo``: Change detection results.
- ``SyncResult``: Outcome of syncing one record/document.
- ``SyncReport``: Aggregate results for one configuration run.
- ``SyncAllResult``: Reports and failures of a multi-configuration run.

All models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel

from notion_vault_sync.config_schema import SyncConfig, SyncDirection


class SyncAction(str, Enum):
    """Possible sync operations for a record/document pair."""

    SKIP = "skip"
    PULL = "pull"
    PUSH = "push"
    CREATE_LOCAL = "create_local"
    CREATE_REMOTE = "create_remote"
    CONFLICT = "conflict"


class ConflictOutcome(str, Enum):
    """What to do with a linked pair in bidirectional mode."""

    NO_CHANGE = "no-change"
    NOTION_WINS = "notion-wins"
    OBSIDIAN_WINS = "obsidian-wins"
    CONFLICT = "conflict"


class LocalDocument(BaseModel):
    """A vault document split into front-matter and body.

    Attributes:
        path: Vault-relative POSIX path.
        frontmatter: Parsed front-matter map.
        content: Body text after the front-matter block.
        last_modified: Modification time in epoch milliseconds.
        remote_id: Linked Notion page id, or ``None`` when unlinked.
    """

    path: str
    frontmatter: dict[str, Any] = {}
    content: str = ""
    last_modified: int = 0
    remote_id: str | None = None

    model_config = {"frozen": True}


class ChangeSet(BaseModel):
    """Which sides of a linked pair differ."""

    property_changes: bool = False
    content_changes: bool = False

    model_config = {"frozen": True}

    @property
    def has_changes(self) -> bool:
        return self.property_changes or self.content_changes


class ConflictInfo(BaseModel):
    """Details about a linked pair left unresolved by the ``manual`` policy.

    Attributes:
        local_path: Vault-relative path of the document.
        remote_id: Notion page id.
        remote_modified: Notion last-edited time (ISO 8601).
        local_modified: Document modification time in epoch milliseconds.
        changes: Which sides differ.
        remote_content: Body of the Notion page.
        local_content: Body of the vault document.
    """

    local_path: str
    remote_id: str
    remote_modified: str
    local_modified: int
    changes: ChangeSet
    remote_content: str = ""
    local_content: str = ""

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of syncing one record/document pair.

    Attributes:
        local_path: Vault-relative path (empty when never derived).
        remote_id: Notion page id (empty for not yet created records).
        action: Sync action that was performed or attempted.
        success: Whether the operation succeeded.
        error: Error message if the operation failed.
    """

    local_path: str = ""
    remote_id: str = ""
    action: SyncAction
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class RunSummary(BaseModel):
    """Counts for one run: successful creates and updates, failures, conflicts."""

    created: int = 0
    updated: int = 0
    failed: int = 0
    conflicts: int = 0

    model_config = {"frozen": True}


_CREATE_ACTIONS = (SyncAction.CREATE_LOCAL, SyncAction.CREATE_REMOTE)
_UPDATE_ACTIONS = (SyncAction.PULL, SyncAction.PUSH)


class SyncReport(BaseModel):
    """Aggregate report for one configuration run.

    Attributes:
        config_name: Name of the sync configuration.
        direction: Direction that actually ran (after downgrades).
        results: Individual sync results, in processing order.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
        config: Configuration copy with ``last_sync`` stamped.
    """

    config_name: str
    direction: SyncDirection
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None
    config: SyncConfig | None = None

    model_config = {"frozen": True}

    @property
    def created(self) -> list[SyncResult]:
        """Successful CREATE_LOCAL and CREATE_REMOTE results."""
        return [
            r for r in self.results if r.success and r.action in _CREATE_ACTIONS
        ]

    @property
    def updated(self) -> list[SyncResult]:
        """Successful PULL and PUSH results."""
        return [
            r for r in self.results if r.success and r.action in _UPDATE_ACTIONS
        ]

    @property
    def conflicts(self) -> list[SyncResult]:
        """Results where action is CONFLICT."""
        return [r for r in self.results if r.action == SyncAction.CONFLICT]

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def summary(self) -> RunSummary:
        return RunSummary(
            created=len(self.created),
            updated=len(self.updated),
            failed=len(self.errors),
            conflicts=len(self.conflicts),
        )


class SyncFailure(BaseModel):
    """A configuration whose run aborted before producing a report."""

    config_name: str
    error: str

    model_config = {"frozen": True}


class SyncAllResult(BaseModel):
    """Outcome of ``SyncEngine.sync_all``."""

    reports: list[SyncReport] = []
    failures: list[SyncFailure] = []

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return not self.failures
