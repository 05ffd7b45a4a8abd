"""
Key-value persistence for portal state.
The SQLite store plays the role of browser local storage: one profile, last write wins.
"""
from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from .db_migrations import SqliteMigration, apply_sqlite_migrations

# Well-known keys.
SESSION_KEY = "user"
DOCUMENTS_KEY = "documents"
USERS_KEY = "users"
CONVERSATION_KEY_PREFIX = "query-history:"


def conversation_key(email: str) -> str:
    return f"{CONVERSATION_KEY_PREFIX}{str(email or '').strip().lower()}"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def close(self) -> None:
        ...


class InMemoryKeyValueStore:
    """Process-local store; used for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(str(key))

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[str(key)] = str(value)

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(str(key), None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    def close(self) -> None:
        return None


class SqliteKeyValueStore:
    """Durable key-value store in a single SQLite file."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = self._connect()
        try:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.Error:
            pass
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self):
        with self._lock:
            if self._conn is None:
                raise RuntimeError("key-value store connection is closed")
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def close(self):
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.commit()
            except sqlite3.Error:
                pass
            self._conn.close()
            self._conn = None

    def __del__(self):
        try:
            self.close()
        except Exception:
            pass

    def _ensure_schema(self):
        migrations = [
            SqliteMigration(
                version=1,
                name="create_kv_entries_table",
                statements=(
                    """
                    CREATE TABLE IF NOT EXISTS kv_entries (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """,
                ),
            ),
        ]
        with self._connection() as conn:
            apply_sqlite_migrations(conn, component="kv_store", migrations=migrations)

    def get(self, key: str) -> str | None:
        with self._connection() as conn:
            row = conn.execute("SELECT value FROM kv_entries WHERE key = ?", (str(key),)).fetchone()
        return str(row["value"]) if row else None

    def set(self, key: str, value: str) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO kv_entries (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (str(key), str(value), datetime.now(timezone.utc).isoformat(timespec="seconds")),
            )

    def remove(self, key: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM kv_entries WHERE key = ?", (str(key),))
