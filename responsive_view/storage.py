#!/usr/bin/env python3
"""Key-value stores for the session-creation surface.

Provides:
- EphemeralStore: process-lifetime values (current and known sessions)
- DurableStore: SQLite-backed JSON values (last used URL / device selection)
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

SESSION_STORAGE_KEY = "responsive-view:session"
LAST_SESSION_KEY = "responsive-view:last-session"


class EphemeralStore:
    """Values that live as long as the service process."""

    def __init__(self):
        self._values: dict[str, object] = {}

    def get(self, key: str, default: object | None = None) -> object | None:
        return self._values.get(key, default)

    def set(self, key: str, value: object) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


def init_db(db_path: Path) -> sqlite3.Connection:
    """Initialize SQLite database."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """
    )
    conn.commit()
    return conn


class DurableStore:
    """Repository for the kv table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, key: str, default: object | None = None) -> object | None:
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if not row:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def set(self, key: str, value: object) -> None:
        now = datetime.now().isoformat()
        self.conn.execute(
            """
            INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, json.dumps(value, separators=(",", ":")), now),
        )
        self.conn.commit()

    def remove(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        self.conn.commit()
