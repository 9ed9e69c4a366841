"""Key-value stores over string keys and values."""

import logging
import os
from typing import Dict, List, Optional, Protocol

import aiosqlite

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Protocol for persistent string key-value stores."""

    async def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    async def remove(self, key: str) -> None:
        """Remove key if present."""
        ...


class InMemoryStore:
    """Dictionary-backed store for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> List[str]:
        return list(self._data.keys())


class SQLiteStore:
    """SQLite-backed key-value store.

    Keys are scoped by namespace so several sessions can share one
    database file without seeing each other's data.
    """

    def __init__(self, path: str, namespace: str = "default"):
        """Initialize the store.

        Args:
            path: Path to the SQLite database file
            namespace: Scope for all keys written through this store
        """
        self.path = path
        self.namespace = namespace
        self._db_connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Open the database connection and create tables."""
        if self._db_connection is not None:
            return

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self._db_connection = await aiosqlite.connect(self.path)
        await self._db_connection.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (namespace, key)
            )
            """
        )
        await self._db_connection.commit()
        logger.info(f"Opened key-value store at {self.path} (namespace={self.namespace})")

    async def _connection(self) -> aiosqlite.Connection:
        if self._db_connection is None:
            await self.initialize()
        return self._db_connection

    async def get(self, key: str) -> Optional[str]:
        db = await self._connection()
        cursor = await db.execute(
            "SELECT value FROM kv_store WHERE namespace = ? AND key = ?",
            (self.namespace, key),
        )
        row = await cursor.fetchone()
        await cursor.close()
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        db = await self._connection()
        await db.execute(
            """
            INSERT INTO kv_store (namespace, key, value, updated_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(namespace, key)
            DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
            """,
            (self.namespace, key, value),
        )
        await db.commit()

    async def remove(self, key: str) -> None:
        db = await self._connection()
        await db.execute(
            "DELETE FROM kv_store WHERE namespace = ? AND key = ?",
            (self.namespace, key),
        )
        await db.commit()

    async def keys(self) -> List[str]:
        db = await self._connection()
        cursor = await db.execute(
            "SELECT key FROM kv_store WHERE namespace = ? ORDER BY key",
            (self.namespace,),
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return [row[0] for row in rows]

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._db_connection:
            await self._db_connection.close()
            self._db_connection = None
