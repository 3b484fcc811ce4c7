"""Bounded history of finished runs."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import ValidationError

from common.models.config import TestConfig
from common.models.history import HistoryEntry
from common.models.result import RunResult
from common.utils import generate_history_id
from controller.storage.key_value import KeyValueStore

logger = logging.getLogger(__name__)

HISTORY_KEY = "testHistory"
MAX_HISTORY_ENTRIES = 50


class HistoryLedger:
    """Newest-first list of past runs, persisted after every change.

    Entries hold compacted results only: per-request outcomes can run to
    tens of thousands of items per run, so only the aggregates needed to
    redisplay the run are kept. Storage errors are logged and never raised;
    history is a convenience, not a durability guarantee.
    """

    def __init__(self, store: KeyValueStore, max_entries: int = MAX_HISTORY_ENTRIES):
        self.store = store
        self.max_entries = max_entries
        self._entries: list[HistoryEntry] = []
        self.selected_id: Optional[str] = None
        self._listeners: list[Callable[[], None]] = []

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    @property
    def selected(self) -> Optional[HistoryEntry]:
        if self.selected_id is None:
            return None
        return self.get(self.selected_id)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Register a listener called after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def record(self, result: RunResult, config: TestConfig) -> HistoryEntry:
        """Add a finished run as the newest entry."""
        entry = HistoryEntry.from_result(generate_history_id(), result, config)
        self._entries = [entry, *self._entries][: self.max_entries]
        logger.info(f"Recorded history entry {entry.id} for {config.url}")
        self._notify()
        await self._persist()
        return entry

    async def delete(self, entry_id: str) -> bool:
        remaining = [e for e in self._entries if e.id != entry_id]
        if len(remaining) == len(self._entries):
            return False

        self._entries = remaining
        if self.selected_id == entry_id:
            self.selected_id = None
        logger.info(f"Deleted history entry {entry_id}")
        self._notify()
        await self._persist()
        return True

    async def clear(self) -> None:
        self._entries = []
        self.selected_id = None
        logger.info("Cleared history")
        self._notify()
        await self._persist()

    def select(self, entry_id: Optional[str]) -> None:
        """Mark the entry loaded into the config/results view."""
        self.selected_id = entry_id
        self._notify()

    async def load_from_storage(self) -> None:
        """Replace in-memory entries with the persisted ones."""
        self._entries = await self._load()
        logger.info(f"Loaded {len(self._entries)} history entries")
        self._notify()

    def success_rate_for(self, url: str) -> Optional[float]:
        """Success rate of the newest run against ``url``."""
        for entry in self._entries:
            if entry.url == url:
                return entry.success_rate
        return None

    async def _load(self) -> list[HistoryEntry]:
        try:
            raw = await self.store.load(HISTORY_KEY)
        except Exception as e:
            logger.warning(f"Failed to load history: {e}")
            return []

        if not isinstance(raw, list):
            return []

        entries = []
        for item in raw:
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid history entry: {e}")

        return entries[: self.max_entries]

    async def _persist(self) -> None:
        data = [e.model_dump(mode="json") for e in self._entries]
        try:
            await self.store.save(HISTORY_KEY, data)
        except Exception as e:
            logger.warning(f"Failed to save history: {e}")

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"History listener error: {e}", exc_info=True)
