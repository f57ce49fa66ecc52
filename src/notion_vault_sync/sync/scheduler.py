"""Periodic auto-sync.

``AutoSyncScheduler`` runs ``SyncEngine.sync_all`` every ``interval``
minutes. Each run is awaited before the next wait starts, so runs never
overlap. ``stop()`` ends the loop at the next wait.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from notion_vault_sync.config_schema import SyncConfig
from notion_vault_sync.core.async_utils import run_sync
from notion_vault_sync.sync.engine import SyncEngine
from notion_vault_sync.sync.models import SyncAllResult

logger = logging.getLogger(__name__)

ConfigsProvider = Callable[[], list[SyncConfig]]
ResultCallback = Callable[[SyncAllResult], None]


class AutoSyncScheduler:
    """Run all enabled sync configurations on a fixed interval.

    Args:
        engine: The sync engine.
        configs_provider: Returns the configurations to run; called before
            every run so stored ``last_sync`` values stay current.
        interval_minutes: Minutes between the end of one run and the start
            of the next.
        on_result: Called with each run's result.
    """

    def __init__(
        self,
        engine: SyncEngine,
        configs_provider: ConfigsProvider,
        interval_minutes: float = 30,
        on_result: ResultCallback | None = None,
    ) -> None:
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.engine = engine
        self.configs_provider = configs_provider
        self.interval = interval_minutes * 60
        self.on_result = on_result
        self.runs = 0
        self._stop_event = asyncio.Event()

    async def run_once(self) -> SyncAllResult:
        """Run every enabled configuration once, in a worker thread."""
        configs = [c for c in self.configs_provider() if c.enabled]
        logger.info("Auto-sync run %d: %d configs", self.runs + 1, len(configs))
        result = await run_sync(self.engine.sync_all, configs)
        self.runs += 1
        if self.on_result is not None:
            self.on_result(result)
        return result

    async def run_forever(self, max_runs: int | None = None) -> None:
        """Run, wait, repeat until ``stop()`` or *max_runs* runs."""
        self._stop_event.clear()
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Auto-sync run failed")
            if max_runs is not None and self.runs >= max_runs:
                return
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue
        logger.info("Auto-sync stopped after %d runs", self.runs)

    def stop(self) -> None:
        self._stop_event.set()
