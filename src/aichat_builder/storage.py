"""Key-value persistence backends.

The SQLite backend uses the same single-table layout as VS Code style
``state.vscdb`` files: ``ItemTable(key TEXT UNIQUE, value TEXT)``. Every write
runs in its own transaction, so an interrupted write leaves the previous
value in place.
"""

import logging
import sqlite3
from pathlib import Path

from .collaborators import KeyValueStore
from .errors import PersistenceError

logger = logging.getLogger(__name__)


class SqliteKeyValueStore(KeyValueStore):
    """Key-value store backed by a single SQLite file."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS ItemTable "
                "(key TEXT UNIQUE ON CONFLICT REPLACE, value TEXT NOT NULL)"
            )

    def get(self, key: str) -> str | None:
        try:
            conn = self._connect()
            try:
                row = conn.execute("SELECT value FROM ItemTable WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning("Failed to read key %s from %s: %s", key, self.db_path, e)
            raise PersistenceError(f"Failed to read {key!r}") from e

        if row is None:
            return None
        value = row[0]
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    def set(self, key: str, value: str) -> None:
        self._write("INSERT INTO ItemTable (key, value) VALUES (?, ?)", (key, value), key)

    def remove(self, key: str) -> None:
        self._write("DELETE FROM ItemTable WHERE key = ?", (key,), key)

    # ── Private helpers ──────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _write(self, sql: str, params: tuple, key: str) -> None:
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(sql, params)
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("Failed to write key %s to %s: %s", key, self.db_path, e)
            raise PersistenceError(f"Failed to write {key!r}") from e


class MemoryKeyValueStore(KeyValueStore):
    """In-process store, used for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)
