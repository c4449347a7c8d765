"""SQLite-backed session store for run state, cached pages, and events."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any

from .errors import CapacityExceededError
from .models import RunState, utc_now_iso

logger = logging.getLogger(__name__)

STATE_KEY = "archivalState"
PAGE_PREFIX = "page:"


class ArchivalStateStore:
    """Key/value store scoped to one session that survives process restarts.

    Entries live only as long as the run that wrote them: finalizing or
    starting a run wipes the whole scope. Nothing here is meant to outlive a
    session.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        scope: str = "default",
        quota_bytes: int = 64 * 1024 * 1024,
    ) -> None:
        self.db_path = db_path
        self.scope = scope
        self.quota_bytes = quota_bytes
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def close(self) -> None:
        self.conn.close()

    def _init_schema(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS kv (
              scope TEXT NOT NULL,
              key TEXT NOT NULL,
              value BLOB NOT NULL,
              updated_at TEXT NOT NULL,
              PRIMARY KEY(scope, key)
            );

            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              scope TEXT NOT NULL,
              event_type TEXT NOT NULL,
              message TEXT NOT NULL,
              created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_scope ON events(scope);
            """
        )
        self.conn.commit()

    # Raw key/value primitives.

    def get(self, key: str) -> bytes | None:
        row = self.conn.execute(
            "SELECT value FROM kv WHERE scope = ? AND key = ?",
            (self.scope, key),
        ).fetchone()
        if row is None:
            return None
        return bytes(row["value"])

    def set(self, key: str, value: bytes) -> None:
        """Write one entry, refusing writes that would exceed the quota."""
        existing = self.conn.execute(
            "SELECT COALESCE(SUM(length(value)), 0) AS used FROM kv WHERE scope = ? AND key != ?",
            (self.scope, key),
        ).fetchone()
        required = int(existing["used"]) + len(value)
        if required > self.quota_bytes:
            raise CapacityExceededError(key, required, self.quota_bytes)
        self.conn.execute(
            """
            INSERT INTO kv (scope, key, value, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(scope, key) DO UPDATE SET
              value = excluded.value,
              updated_at = excluded.updated_at
            """,
            (self.scope, key, sqlite3.Binary(value), utc_now_iso()),
        )
        self.conn.commit()

    def remove(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv WHERE scope = ? AND key = ?", (self.scope, key))
        self.conn.commit()

    def clear_all(self) -> None:
        """Drop run state and every cached page of this scope."""
        self.conn.execute("DELETE FROM kv WHERE scope = ?", (self.scope,))
        self.conn.commit()

    def used_bytes(self) -> int:
        row = self.conn.execute(
            "SELECT COALESCE(SUM(length(value)), 0) AS used FROM kv WHERE scope = ?",
            (self.scope,),
        ).fetchone()
        return int(row["used"])

    # Run state.

    def get_state(self) -> RunState | None:
        raw = self.get(STATE_KEY)
        if raw is None:
            return None
        return RunState.from_json(raw.decode("utf-8"))

    def set_state(self, state: RunState) -> None:
        state.updated_at = utc_now_iso()
        self.set(STATE_KEY, state.to_json().encode("utf-8"))

    # Cached pages.

    def cache_page(self, key: str, data: bytes) -> None:
        self.set(PAGE_PREFIX + key, data)
        logger.debug("Cached page %s (%d bytes)", key, len(data))

    def read_page(self, key: str) -> bytes | None:
        return self.get(PAGE_PREFIX + key)

    def evict_page(self, key: str) -> None:
        self.remove(PAGE_PREFIX + key)

    def cached_pages(self) -> list[str]:
        rows = self.conn.execute(
            "SELECT key FROM kv WHERE scope = ? AND key LIKE ? ORDER BY updated_at, rowid",
            (self.scope, PAGE_PREFIX + "%"),
        ).fetchall()
        return [str(row["key"])[len(PAGE_PREFIX):] for row in rows]

    # Event journal, kept across clear_all.

    def add_event(self, event_type: str, message: str) -> None:
        self.conn.execute(
            """
            INSERT INTO events (scope, event_type, message, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (self.scope, event_type, message, utc_now_iso()),
        )
        self.conn.commit()

    def list_events(self, limit: int = 50) -> list[dict[str, Any]]:
        rows = self.conn.execute(
            """
            SELECT id, event_type, message, created_at
            FROM events WHERE scope = ?
            ORDER BY id DESC
            LIMIT ?
            """,
            (self.scope, limit),
        ).fetchall()
        return [dict(row) for row in rows]
