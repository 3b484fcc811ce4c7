"""Key-value persistence backed by SQLite."""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from common.utils import ensure_dir

logger = logging.getLogger(__name__)

# SQLite schema
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value JSON NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


class KeyValueStore(ABC):
    """Persistence capability used by history and preferences.

    Both calls may fail; callers treat failures as non-fatal.
    """

    @abstractmethod
    async def load(self, key: str) -> Optional[Any]:
        """Return the stored value or None when the key is absent."""

    @abstractmethod
    async def save(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value, returning once it is written."""


class SqliteKeyValueStore(KeyValueStore):
    """Stores JSON values in a single SQLite table."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        ensure_dir(self.db_path.parent)
        self._init_database_sync()

    def _init_database_sync(self) -> None:
        """Initialize SQLite database synchronously."""
        conn = sqlite3.connect(self.db_path)
        try:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
            logger.info(f"Initialized key-value store at {self.db_path}")
        finally:
            conn.close()

    async def load(self, key: str) -> Optional[Any]:
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            )
            row = await cursor.fetchone()

        if row is None:
            return None
        return json.loads(row[0])

    async def save(self, key: str, value: Any) -> None:
        async with aiosqlite.connect(self.db_path) as conn:
            await conn.execute("""
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, (
                key,
                json.dumps(value),
                datetime.utcnow().isoformat(),
            ))
            await conn.commit()
        logger.debug(f"Saved key: {key}")
