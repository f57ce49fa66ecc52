"""Conflict resolution policies for the sync engine.

Provides one resolver per policy:

- ``NotionWinsResolver``: The Notion page always wins.
- ``ObsidianWinsResolver``: The vault document always wins.
- ``NewerWinsResolver``: The side modified last wins; ties go to Notion.
- ``ManualResolver``: Nothing is written; the pair is reported as a conflict.

Resolvers are pure: the outcome depends only on the arguments, so equal
inputs always give equal outcomes.

The ``create_resolver()`` factory maps policy names (and their aliases) to
resolver instances.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from notion_vault_sync.config_schema import normalize_conflict_policy
from notion_vault_sync.core.models import RemoteRecord
from notion_vault_sync.sync.models import ChangeSet, ConflictOutcome, LocalDocument

logger = logging.getLogger(__name__)


def parse_remote_timestamp(value: str) -> int:
    """ISO 8601 timestamp as epoch milliseconds; 0 when it cannot be parsed."""
    if not value:
        return 0
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable remote timestamp: %r", value)
        return 0
    return int(parsed.timestamp() * 1000)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(
        self,
        record: RemoteRecord,
        document: LocalDocument,
        changes: ChangeSet,
    ) -> ConflictOutcome:
        """Decide which side of a linked pair wins.

        Args:
            record: Notion snapshot of the page.
            document: The linked vault document.
            changes: Output of the change detector for the pair.

        Returns:
            ``NO_CHANGE`` when nothing differs, otherwise the policy verdict.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


class NotionWinsResolver:
    """Always apply the Notion page to the document."""

    def resolve(self, record, document, changes) -> ConflictOutcome:
        if not changes.has_changes:
            return ConflictOutcome.NO_CHANGE
        return ConflictOutcome.NOTION_WINS


class ObsidianWinsResolver:
    """Always push the document to the Notion page."""

    def resolve(self, record, document, changes) -> ConflictOutcome:
        if not changes.has_changes:
            return ConflictOutcome.NO_CHANGE
        return ConflictOutcome.OBSIDIAN_WINS


class NewerWinsResolver:
    """Pick the side with the later modification time.

    The Notion last-edited time is compared with the document mtime, both
    in epoch milliseconds. Equal times resolve to Notion.
    """

    def resolve(self, record, document, changes) -> ConflictOutcome:
        if not changes.has_changes:
            return ConflictOutcome.NO_CHANGE
        remote_ms = parse_remote_timestamp(record.last_modified)
        if remote_ms >= document.last_modified:
            return ConflictOutcome.NOTION_WINS
        return ConflictOutcome.OBSIDIAN_WINS


class ManualResolver:
    """Leave both sides untouched and report the conflict."""

    def resolve(self, record, document, changes) -> ConflictOutcome:
        if not changes.has_changes:
            return ConflictOutcome.NO_CHANGE
        logger.warning(
            "Manual conflict for %s (page %s): notion=%s local=%s "
            "properties_changed=%s content_changed=%s",
            document.path,
            record.id,
            record.last_modified,
            document.last_modified,
            changes.property_changes,
            changes.content_changes,
        )
        return ConflictOutcome.CONFLICT


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "notion-wins": NotionWinsResolver,
    "obsidian-wins": ObsidianWinsResolver,
    "newer-wins": NewerWinsResolver,
    "manual": ManualResolver,
}


def create_resolver(policy: str) -> ConflictResolver:
    """Create a conflict resolver for the given policy name.

    Args:
        policy: One of ``"notion-wins"``, ``"obsidian-wins"``,
            ``"newer-wins"``, ``"manual"``, or the aliases
            ``"remote-wins"`` / ``"local-wins"``.

    Raises:
        ValueError: If *policy* is not recognised.
    """
    cls = _STRATEGY_MAP.get(normalize_conflict_policy(policy))
    if cls is None:
        raise ValueError(
            f"Unknown conflict resolution: '{policy}'. Valid policies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls()  # type: ignore[return-value]
