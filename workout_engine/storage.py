"""Key-value persistence on top of SQLite.

Values are stored as JSON text in a single ``kv_store`` table, one row per
key.  Each write replaces the whole row inside one transaction so a reader
never observes a partially written value.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from workout_engine import DEFAULT_DB_PATH
from workout_engine.errors import PersistenceError

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class KeyValueStore:
    """Get/set/remove JSON values by key in a SQLite database."""

    def __init__(self, db_path: Path = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with sqlite3.connect(str(self.db_path)) as conn:
                conn.execute(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Cannot open store at {self.db_path}") from exc

    def get(self, key: str) -> Any | None:
        """Return the value stored under ``key`` or ``None``."""

        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Error retrieving {key}") from exc
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as exc:
            raise PersistenceError(f"Corrupt value stored under {key}") from exc

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Value for {key} is not serialisable") from exc
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                    (key, payload),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Error storing {key}") from exc

    def remove(self, key: str) -> None:
        """Delete ``key``.  Removing a missing key is not an error."""

        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Error removing {key}") from exc

    def keys(self) -> list[str]:
        """Return all stored keys in insertion order."""

        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                rows = conn.execute("SELECT key FROM kv_store ORDER BY rowid").fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError("Error listing keys") from exc
        return [row[0] for row in rows]
