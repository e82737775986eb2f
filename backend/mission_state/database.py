from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from .time_utils import to_iso, utc_now


class SQLiteStateDB:
    """Durable key-value namespaces backed by a single SQLite file.

    Each namespace is addressed by an opaque id and holds JSON values under
    string keys, with get/put/delete-all semantics.
    """

    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            if immediate:
                # Holds the file write lock from the first statement to commit.
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._lock, self.connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS state_entries (
                  namespace_id TEXT NOT NULL,
                  key TEXT NOT NULL,
                  value_json TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL,
                  PRIMARY KEY (namespace_id, key)
                );
                """
            )

    @staticmethod
    def get(conn: sqlite3.Connection, namespace_id: str, key: str) -> Any | None:
        row = conn.execute(
            """
            SELECT value_json
            FROM state_entries
            WHERE namespace_id = ? AND key = ?
            LIMIT 1
            """,
            (namespace_id, key),
        ).fetchone()
        if row is None:
            return None
        return json.loads(row["value_json"])

    @staticmethod
    def put(conn: sqlite3.Connection, namespace_id: str, key: str, value: Any) -> None:
        now = to_iso(utc_now())
        conn.execute(
            """
            INSERT INTO state_entries (namespace_id, key, value_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(namespace_id, key) DO UPDATE SET
              value_json = excluded.value_json,
              updated_at = excluded.updated_at
            """,
            (namespace_id, key, json.dumps(value, separators=(",", ":")), now, now),
        )

    @staticmethod
    def delete_all(conn: sqlite3.Connection, namespace_id: str) -> int:
        cursor = conn.execute("DELETE FROM state_entries WHERE namespace_id = ?", (namespace_id,))
        return cursor.rowcount
