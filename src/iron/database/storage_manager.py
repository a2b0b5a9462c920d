# src/iron/database/storage_manager.py
from __future__ import annotations

"""
Persistent key-value storage backed by SQLite.

Values are serialized to JSON. The session keeps one ``StorageManager`` per
opened path and passes it around explicitly.
"""

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from iron.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class StorageManager:
    """
    Manages a persistent key-value store backed by a SQLite database.

    Writes are serialized with a thread lock so the store can be used from a
    worker thread while the event loop keeps running.
    """

    def __init__(self, db_path: Path | str):
        """
        Open (and create if needed) the database at ``db_path``.

        Raises:
            PersistenceError: If the directory or database cannot be opened
        """
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._create_table()
        except (sqlite3.Error, OSError) as e:
            logger.error("Database connection failed for %s: %s", self.db_path, e)
            self._conn = None
            raise PersistenceError(
                f"Could not open storage at {self.db_path}: {e}",
                details={"path": str(self.db_path)},
            ) from e

    def _create_table(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS key_value_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceError(f"Storage at {self.db_path} is closed")
        return self._conn

    def set(self, key: str, value: Any) -> None:
        """
        Save or update a value.

        Raises:
            PersistenceError: If the value cannot be serialized or written
        """
        try:
            value_json = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for key '{key}' is not JSON serializable: {e}") from e

        with self._lock:
            conn = self._connection()
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO key_value_store (key, value)
                        VALUES (?, ?)
                        ON CONFLICT(key) DO UPDATE SET value = excluded.value
                        """,
                        (key, value_json),
                    )
            except sqlite3.Error as e:
                logger.error("Failed to set key '%s': %s", key, e)
                raise PersistenceError(f"Failed to write key '{key}': {e}") from e

    def get(self, key: str, default: Any | None = None) -> Any:
        """
        Retrieve a value by key, or ``default`` if it is not stored.

        Raises:
            PersistenceError: If the read fails or the stored value is not valid JSON
        """
        with self._lock:
            conn = self._connection()
            try:
                row = conn.execute(
                    "SELECT value FROM key_value_store WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                logger.error("Failed to get key '%s': %s", key, e)
                raise PersistenceError(f"Failed to read key '{key}': {e}") from e

        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Stored value for key '{key}' is corrupted") from e

    def delete(self, key: str) -> None:
        with self._lock:
            conn = self._connection()
            try:
                with conn:
                    conn.execute("DELETE FROM key_value_store WHERE key = ?", (key,))
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to delete key '{key}': {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @property
    def closed(self) -> bool:
        return self._conn is None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
