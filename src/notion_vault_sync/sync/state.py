"""Sync state persistence layer.

Keeps ``sync_state.json`` in the state directory (``.notion_sync/`` by
default). The file records, per sync configuration id, the epoch-millis
time of the last completed run and the counts of that run::

    {
      "version": 1,
      "updated_at": "2026-01-01T00:00:00+00:00",
      "configs": {
        "books": {
          "name": "Books",
          "last_sync": 1767225600000,
          "last_run": {"created": 1, "updated": 3, "failed": 0, "conflicts": 0}
        }
      }
    }

Writes are atomic: ``save()`` writes a temp file in the same directory and
then calls ``os.replace()`` so readers never see partial data.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from notion_vault_sync.config_schema import SyncConfig
from notion_vault_sync.sync.models import SyncReport

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "sync_state.json"
STATE_VERSION = 1


class SyncState:
    """Load, save, and query persisted sync state.

    Args:
        state_dir: Directory holding the state file.
    """

    def __init__(self, state_dir: Path | str) -> None:
        self._state_dir = Path(state_dir)

    @property
    def path(self) -> Path:
        return self._state_dir / STATE_FILE_NAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load state from disk.

        Returns:
            The state dict. A missing or unreadable file yields an empty
            state with ``version=1``.
        """
        if not self.path.exists():
            return {"version": STATE_VERSION, "configs": {}}
        try:
            with open(self.path, encoding="utf-8") as fh:
                state = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {"version": STATE_VERSION, "configs": {}}
        if not isinstance(state, dict):
            return {"version": STATE_VERSION, "configs": {}}
        state.setdefault("configs", {})
        return state

    def save(self, state: dict) -> None:
        """Persist state to disk atomically.

        Creates the state directory if needed and stamps ``updated_at``.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["version"] = STATE_VERSION
        state["updated_at"] = datetime.now(timezone.utc).isoformat()

        fd, tmp_path = tempfile.mkstemp(dir=str(self._state_dir), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Config helpers
    # ------------------------------------------------------------------

    def get_entry(self, config_id: str) -> dict | None:
        """Return the stored entry for *config_id*, or ``None``."""
        return self.load()["configs"].get(config_id)

    def persist_config(self, config: SyncConfig) -> None:
        """Store ``config.last_sync``; usable as the engine's persist callback."""
        state = self.load()
        entry = state["configs"].setdefault(config.id, {})
        entry["name"] = config.name
        entry["last_sync"] = config.last_sync
        self.save(state)

    def record_report(self, report: SyncReport) -> None:
        """Store the counts of a finished run next to its ``last_sync``."""
        if report.config is None:
            return
        state = self.load()
        entry = state["configs"].setdefault(report.config.id, {})
        entry["name"] = report.config.name
        entry["last_sync"] = report.config.last_sync
        entry["last_run"] = {
            **report.summary().model_dump(),
            "direction": report.direction.value,
            "completed_at": report.completed_at,
        }
        self.save(state)

    def apply_to(self, configs: list[SyncConfig]) -> list[SyncConfig]:
        """Return *configs* with stored ``last_sync`` values overlaid."""
        stored = self.load()["configs"]
        updated: list[SyncConfig] = []
        for config in configs:
            entry = stored.get(config.id) or {}
            last_sync = entry.get("last_sync")
            if isinstance(last_sync, int) and last_sync > config.last_sync:
                config = config.model_copy(update={"last_sync": last_sync})
            updated.append(config)
        return updated
