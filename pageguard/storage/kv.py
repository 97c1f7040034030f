"""Durable key/value storage backed by SQLite."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import aiosqlite

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Async SQLite key/value table holding JSON documents."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self):
        """Establish database connection and create tables."""
        self._connection = await aiosqlite.connect(self.db_path)
        # Best-effort because some SQLite builds/settings may reject these pragmas.
        try:
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA busy_timeout=5000")
            await self._connection.commit()
        except aiosqlite.Error as exc:
            logger.debug("SQLite pragmas rejected: %s", exc)
        await self._create_tables()

    async def close(self):
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _create_tables(self):
        async with self._lock:
            await self._connection.executescript(
                """
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );
                """
            )
            await self._connection.commit()

    async def get(self, key: str, default: Any = None) -> Any:
        async with self._lock:
            cursor = await self._connection.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
        if row is None:
            return default
        return json.loads(row[0])

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        async with self._lock:
            await self._connection.execute(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                (key, payload),
            )
            await self._connection.commit()
