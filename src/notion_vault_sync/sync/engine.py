"""Sync engine that runs one sync configuration end to end.

The ``SyncEngine`` ties together the remote client, the vault store, the
property codec, the path mapper, the change detector and the conflict
resolver. For one configuration it:

1. Checks the configuration before touching the network or the disk.
2. Resolves the effective direction (an unmapped bidirectional config is
   downgraded to pull).
3. Runs pull, push or merge, one record/document at a time.
4. Builds a ``SyncReport`` and returns the configuration copy with
   ``last_sync`` stamped, handing it to the ``persist`` callback.

Error handling is per item: one failing record or document is reported and
the run continues. Only a failed collection fetch aborts a run. Nothing is
ever deleted on either side.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from notion_vault_sync.config_schema import (
    SyncConfig,
    SyncDirection,
    SyncSettings,
    parse_direction,
)
from notion_vault_sync.core.client import RemoteClient
from notion_vault_sync.core.models import RemoteRecord
from notion_vault_sync.exceptions import (
    ConfigurationError,
    NotionSyncError,
    SyncRunError,
)
from notion_vault_sync.sync.detector import ChangeDetector
from notion_vault_sync.sync.frontmatter import (
    LAST_NOTION_SYNC_KEY,
    LAST_OBSIDIAN_SYNC_KEY,
    NOTION_ID_KEY,
    parse_document,
    serialize_document,
)
from notion_vault_sync.sync.mapper import PathMapper
from notion_vault_sync.sync.models import (
    ConflictInfo,
    ConflictOutcome,
    LocalDocument,
    SyncAction,
    SyncAllResult,
    SyncFailure,
    SyncReport,
    SyncResult,
)
from notion_vault_sync.sync.properties import PropertyCodec
from notion_vault_sync.sync.resolver import create_resolver, parse_remote_timestamp
from notion_vault_sync.sync.state import SyncState
from notion_vault_sync.vault import DocumentHandle, EntryKind, LocalStore, VaultStore

logger = logging.getLogger(__name__)

PersistCallback = Callable[[SyncConfig], None]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _remote_sync_stamp(last_modified: str) -> str:
    """Normalize a page's last-edited time to UTC ISO 8601 with milliseconds."""
    millis = parse_remote_timestamp(last_modified)
    if not millis:
        return _now_iso()
    stamp = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SyncEngine:
    """Run sync configurations against one Notion client and one vault.

    Args:
        client: Remote client for Notion operations.
        store: Local document store for the vault.
        conflict_resolution: Policy for changed linked pairs in
            bidirectional runs.
        persist: Called with the updated configuration after each run.
    """

    def __init__(
        self,
        client: RemoteClient,
        store: LocalStore,
        conflict_resolution: str = "newer-wins",
        persist: PersistCallback | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.resolver = create_resolver(conflict_resolution)
        self.persist = persist
        self.codec = PropertyCodec(title_resolver=client.resolve_record_title)
        self.pending_conflicts: list[ConflictInfo] = []

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(
        self,
        config: SyncConfig,
        direction: SyncDirection | str | None = None,
    ) -> SyncReport:
        """Run one configuration.

        Args:
            config: The sync configuration. Never mutated.
            direction: Overrides ``config.direction`` for this run.

        Returns:
            The run report; ``report.config`` is the stamped copy.

        Raises:
            ConfigurationError: If the configuration cannot run.
            SyncRunError: If the Notion database could not be fetched.
        """
        started_at = _now_iso()
        effective = self._resolve_direction(config, direction)
        self.pending_conflicts = []

        logger.info(
            "Starting %s sync for '%s' (%s <-> %s)",
            effective.value,
            config.name,
            config.database_id,
            config.folder,
        )

        match effective:
            case SyncDirection.PULL:
                results = self._pull(config)
            case SyncDirection.PUSH:
                results = self._push(config)
            case SyncDirection.BIDIRECTIONAL:
                results = self._merge(config)

        updated = config.model_copy(update={"last_sync": _now_ms()})
        report = SyncReport(
            config_name=config.name,
            direction=effective,
            results=results,
            started_at=started_at,
            completed_at=_now_iso(),
            config=updated,
        )

        summary = report.summary()
        logger.info(
            "Finished sync for '%s': %d created, %d updated, %d failed, %d conflicts",
            config.name,
            summary.created,
            summary.updated,
            summary.failed,
            summary.conflicts,
        )

        if self.persist is not None:
            try:
                self.persist(updated)
            except Exception as exc:
                logger.error(
                    "Failed to persist sync state for '%s': %s",
                    config.name,
                    exc,
                )
        return report

    def sync_all(
        self,
        configs: list[SyncConfig],
        direction: SyncDirection | str | None = None,
    ) -> SyncAllResult:
        """Run every enabled configuration, one after another.

        A configuration that fails to run is recorded in ``failures`` and
        the remaining ones still run.
        """
        reports: list[SyncReport] = []
        failures: list[SyncFailure] = []
        for config in configs:
            if not config.enabled:
                logger.info("Skipping disabled sync config '%s'", config.name)
                continue
            try:
                reports.append(self.run(config, direction))
            except NotionSyncError as exc:
                logger.error("Sync '%s' failed: %s", config.name, exc)
                failures.append(
                    SyncFailure(config_name=config.name, error=str(exc))
                )
            except Exception as exc:
                logger.exception("Unexpected error syncing '%s'", config.name)
                failures.append(
                    SyncFailure(config_name=config.name, error=str(exc))
                )
        return SyncAllResult(reports=reports, failures=failures)

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _resolve_direction(
        self,
        config: SyncConfig,
        direction: SyncDirection | str | None,
    ) -> SyncDirection:
        if not config.database_id:
            raise ConfigurationError(
                f"Sync config '{config.name}' has no database id",
                field="database_id",
            )
        if not config.folder:
            raise ConfigurationError(
                f"Sync config '{config.name}' has no vault folder",
                field="folder",
            )

        try:
            effective = parse_direction(
                direction if direction is not None else config.direction
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc), field="direction") from None

        if not config.field_mappings:
            if effective == SyncDirection.BIDIRECTIONAL:
                logger.warning(
                    "Sync config '%s' has no field mappings; "
                    "bidirectional sync falls back to pull",
                    config.name,
                )
                return SyncDirection.PULL
            if effective == SyncDirection.PUSH:
                raise ConfigurationError(
                    f"Sync config '{config.name}' needs field mappings to push to Notion",
                    field="field_mappings",
                )
        return effective

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _fetch_records(self, config: SyncConfig) -> list[RemoteRecord]:
        try:
            records = self.client.list_collection_records(config.database_id)
        except Exception as exc:
            raise SyncRunError(
                config.name, f"could not fetch Notion database: {exc}"
            ) from exc
        logger.info(
            "Fetched %d pages from database %s", len(records), config.database_id
        )
        return records

    def _fetch_schema(self, config: SyncConfig) -> dict[str, str] | None:
        try:
            return self.client.get_record_schema(config.database_id)
        except Exception as exc:
            logger.warning(
                "Could not fetch schema of database %s, using rich text for text fields: %s",
                config.database_id,
                exc,
            )
            return None

    def _read_document(self, handle: DocumentHandle) -> LocalDocument:
        frontmatter, body = parse_document(self.store.read_document(handle))
        remote_id = frontmatter.get(NOTION_ID_KEY)
        return LocalDocument(
            path=handle.path,
            frontmatter=frontmatter,
            content=body,
            last_modified=handle.mtime,
            remote_id=str(remote_id) if remote_id not in (None, "") else None,
        )

    def _local_snapshot(
        self, config: SyncConfig
    ) -> tuple[list[LocalDocument], list[SyncResult]]:
        """Read every document under the folder; unreadable ones become failures."""
        if self.store.get_entry(config.folder) != EntryKind.FOLDER:
            return [], []
        documents: list[LocalDocument] = []
        failures: list[SyncResult] = []
        for handle in self.store.list_documents(config.folder):
            try:
                documents.append(self._read_document(handle))
            except Exception as exc:
                logger.error("Failed to read %s: %s", handle.path, exc)
                failures.append(
                    SyncResult(
                        local_path=handle.path,
                        action=SyncAction.SKIP,
                        success=False,
                        error=str(exc),
                    )
                )
        return documents, failures

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render_record(self, record: RemoteRecord, config: SyncConfig) -> str:
        frontmatter = self.codec.to_local(record.properties, config.field_mappings)
        frontmatter[NOTION_ID_KEY] = record.id
        frontmatter[LAST_NOTION_SYNC_KEY] = _remote_sync_stamp(record.last_modified)
        return serialize_document(frontmatter, record.content)

    def _create_local(
        self,
        record: RemoteRecord,
        config: SyncConfig,
        mapper: PathMapper,
        text: str,
    ) -> SyncResult:
        """Create the document for *record*, disambiguating an occupied path."""
        path = mapper.path_for(record)
        if self.store.get_entry(path) is not None:
            path = mapper.alternate_path_for(record)
            if self.store.get_entry(path) is not None:
                return SyncResult(
                    local_path=path,
                    remote_id=record.id,
                    action=SyncAction.CREATE_LOCAL,
                    success=False,
                    error=f"Target path already exists: {path}",
                )
        self.store.create_document(path, text)
        logger.info("Created %s from page %s", path, record.id)
        return SyncResult(
            local_path=path, remote_id=record.id, action=SyncAction.CREATE_LOCAL
        )

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def _pull(self, config: SyncConfig) -> list[SyncResult]:
        records = self._fetch_records(config)
        if not records:
            logger.info("Database %s has no pages", config.database_id)
            return []

        self.store.ensure_folder(config.folder)
        mapper = PathMapper(config)
        documents, _ = self._local_snapshot(config)
        linked: dict[str, LocalDocument] = {}
        for document in documents:
            if document.remote_id and document.remote_id not in linked:
                linked[document.remote_id] = document

        results: list[SyncResult] = []
        for record in records:
            try:
                results.append(
                    self._pull_record(record, config, mapper, linked)
                )
            except Exception as exc:
                logger.error("Error pulling page %s: %s", record.id, exc)
                results.append(
                    SyncResult(
                        remote_id=record.id,
                        action=SyncAction.PULL,
                        success=False,
                        error=str(exc),
                    )
                )
        return results

    def _pull_record(
        self,
        record: RemoteRecord,
        config: SyncConfig,
        mapper: PathMapper,
        linked: dict[str, LocalDocument],
    ) -> SyncResult:
        text = self._render_record(record, config)

        existing = linked.get(record.id)
        if existing is not None:
            path = existing.path
        else:
            path = mapper.path_for(record)
            occupant = self._linked_id_at(path)
            if occupant is not None and occupant != record.id:
                # The derived path belongs to another page's document.
                return self._create_local(record, config, mapper, text)

        match self.store.get_entry(path):
            case EntryKind.FILE:
                self.store.write_document(DocumentHandle(path=path), text)
                logger.debug("Updated %s from page %s", path, record.id)
                return SyncResult(
                    local_path=path, remote_id=record.id, action=SyncAction.PULL
                )
            case EntryKind.FOLDER:
                return SyncResult(
                    local_path=path,
                    remote_id=record.id,
                    action=SyncAction.PULL,
                    success=False,
                    error=f"A folder exists at {path}",
                )
            case _:
                self.store.create_document(path, text)
                logger.info("Created %s from page %s", path, record.id)
                return SyncResult(
                    local_path=path,
                    remote_id=record.id,
                    action=SyncAction.CREATE_LOCAL,
                )

    def _linked_id_at(self, path: str) -> str | None:
        handle = self.store.get_document(path)
        if handle is None:
            return None
        return self._read_document(handle).remote_id

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def _push(self, config: SyncConfig) -> list[SyncResult]:
        if self.store.get_entry(config.folder) != EntryKind.FOLDER:
            raise ConfigurationError(
                f"Vault folder not found: {config.folder}", field="folder"
            )

        schema = self._fetch_schema(config)
        results: list[SyncResult] = []
        for handle in self.store.list_documents(config.folder):
            try:
                document = self._read_document(handle)
                results.append(self._push_document(document, config, schema))
            except Exception as exc:
                logger.error("Error pushing %s: %s", handle.path, exc)
                results.append(
                    SyncResult(
                        local_path=handle.path,
                        action=SyncAction.PUSH,
                        success=False,
                        error=str(exc),
                    )
                )
        return results

    def _push_document(
        self,
        document: LocalDocument,
        config: SyncConfig,
        schema: dict[str, str] | None,
    ) -> SyncResult:
        properties = self.codec.to_remote(
            document.frontmatter, config.field_mappings, schema
        )
        if document.remote_id:
            self.client.update_record(
                document.remote_id, properties, document.content
            )
            logger.debug("Updated page %s from %s", document.remote_id, document.path)
            return SyncResult(
                local_path=document.path,
                remote_id=document.remote_id,
                action=SyncAction.PUSH,
            )
        return self._create_remote(document, config, properties)

    def _create_remote(
        self,
        document: LocalDocument,
        config: SyncConfig,
        properties: dict[str, Any],
    ) -> SyncResult:
        """Create a page for *document* and link the document to it."""
        new_id = self.client.create_record(
            config.database_id, properties, document.content
        )
        frontmatter = dict(document.frontmatter)
        frontmatter[NOTION_ID_KEY] = new_id
        frontmatter[LAST_OBSIDIAN_SYNC_KEY] = _now_iso()
        self.store.write_document(
            DocumentHandle(path=document.path),
            serialize_document(frontmatter, document.content),
        )
        logger.info("Created page %s from %s", new_id, document.path)
        return SyncResult(
            local_path=document.path,
            remote_id=new_id,
            action=SyncAction.CREATE_REMOTE,
        )

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def _merge(self, config: SyncConfig) -> list[SyncResult]:
        records = self._fetch_records(config)
        documents, results = self._local_snapshot(config)
        schema = self._fetch_schema(config)
        mapper = PathMapper(config)
        detector = ChangeDetector(self.codec, config.field_mappings)

        notion_map: dict[str, RemoteRecord] = {r.id: r for r in records}
        obsidian_map: dict[str, LocalDocument] = {}
        unlinked: list[LocalDocument] = []
        for document in documents:
            remote_id = document.remote_id
            if remote_id and remote_id in obsidian_map:
                first = obsidian_map[remote_id].path
                logger.warning(
                    "%s links page %s already linked from %s; skipping",
                    document.path,
                    remote_id,
                    first,
                )
                results.append(
                    SyncResult(
                        local_path=document.path,
                        remote_id=remote_id,
                        action=SyncAction.SKIP,
                        success=False,
                        error=f"Page {remote_id} is already linked from {first}",
                    )
                )
            elif remote_id and remote_id in notion_map:
                obsidian_map[remote_id] = document
            else:
                if remote_id:
                    logger.info(
                        "%s links page %s which is not in the database; relinking",
                        document.path,
                        remote_id,
                    )
                    obsidian_map[remote_id] = document
                unlinked.append(document)

        for record in records:
            document = obsidian_map.get(record.id)
            try:
                if document is None:
                    self.store.ensure_folder(config.folder)
                    text = self._render_record(record, config)
                    results.append(
                        self._create_local(record, config, mapper, text)
                    )
                else:
                    results.append(
                        self._merge_pair(record, document, config, detector, schema)
                    )
            except Exception as exc:
                logger.error("Error merging page %s: %s", record.id, exc)
                results.append(
                    SyncResult(
                        local_path=document.path if document else "",
                        remote_id=record.id,
                        action=SyncAction.SKIP,
                        success=False,
                        error=str(exc),
                    )
                )

        for document in unlinked:
            try:
                properties = self.codec.to_remote(
                    document.frontmatter, config.field_mappings, schema
                )
                results.append(
                    self._create_remote(document, config, properties)
                )
            except Exception as exc:
                logger.error("Error creating page from %s: %s", document.path, exc)
                results.append(
                    SyncResult(
                        local_path=document.path,
                        action=SyncAction.CREATE_REMOTE,
                        success=False,
                        error=str(exc),
                    )
                )
        return results

    def _merge_pair(
        self,
        record: RemoteRecord,
        document: LocalDocument,
        config: SyncConfig,
        detector: ChangeDetector,
        schema: dict[str, str] | None,
    ) -> SyncResult:
        changes = detector.detect(record, document)
        outcome = self.resolver.resolve(record, document, changes)

        match outcome:
            case ConflictOutcome.NO_CHANGE:
                return SyncResult(
                    local_path=document.path,
                    remote_id=record.id,
                    action=SyncAction.SKIP,
                )
            case ConflictOutcome.NOTION_WINS:
                self.store.write_document(
                    DocumentHandle(path=document.path),
                    self._render_record(record, config),
                )
                return SyncResult(
                    local_path=document.path,
                    remote_id=record.id,
                    action=SyncAction.PULL,
                )
            case ConflictOutcome.OBSIDIAN_WINS:
                properties = self.codec.to_remote(
                    document.frontmatter, config.field_mappings, schema
                )
                self.client.update_record(record.id, properties, document.content)
                frontmatter = dict(document.frontmatter)
                frontmatter[LAST_OBSIDIAN_SYNC_KEY] = _now_iso()
                self.store.write_document(
                    DocumentHandle(path=document.path),
                    serialize_document(frontmatter, document.content),
                )
                return SyncResult(
                    local_path=document.path,
                    remote_id=record.id,
                    action=SyncAction.PUSH,
                )
            case _:
                self.pending_conflicts.append(
                    ConflictInfo(
                        local_path=document.path,
                        remote_id=record.id,
                        remote_modified=record.last_modified,
                        local_modified=document.last_modified,
                        changes=changes,
                        remote_content=record.content,
                        local_content=document.content,
                    )
                )
                return SyncResult(
                    local_path=document.path,
                    remote_id=record.id,
                    action=SyncAction.CONFLICT,
                    error="manual resolution required",
                )


def build_engine(
    client: RemoteClient, settings: SyncSettings
) -> tuple[SyncEngine, SyncState]:
    """Engine and state store for the ``sync`` section of the config.

    The engine persists ``last_sync`` through the returned state store.
    """
    state = SyncState(Path(settings.state_dir).expanduser())
    engine = SyncEngine(
        client=client,
        store=VaultStore(settings.vault_root),
        conflict_resolution=settings.conflict_resolution,
        persist=state.persist_config,
    )
    return engine, state
