"""SQLite implementation of the configuration repository."""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from .repository import ConfigRepository


class SQLiteConfigRepository(ConfigRepository):
    """Persist configuration records using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    # ------------------------------------------------------------------
    # Repository API
    def get(self, key: str) -> dict[str, Any] | None:
        rows = self._fetchall("SELECT value FROM entries WHERE key = ?", key)
        if not rows:
            return None
        return json.loads(rows[0]["value"])

    def put(self, key: str, record: dict[str, Any]) -> None:
        self._execute(
            "INSERT INTO entries (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            key,
            json.dumps(record),
        )

    def delete(self, key: str) -> None:
        self._execute("DELETE FROM entries WHERE key = ?", key)

    def list(self, prefix: str) -> list[str]:
        rows = self._fetchall("SELECT key FROM entries ORDER BY key")
        return [r["key"][len(prefix):] for r in rows if r["key"].startswith(prefix)]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
