from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Protocol

from .models import ActivityEvent, CacheRecord
from .pairing import pair_events
from .timeutil import utc_now

logger = logging.getLogger(__name__)


class ActivityCacheStore(Protocol):
    def load(self, user_id: str) -> CacheRecord | None: ...

    def save(self, record: CacheRecord) -> None: ...


def record_from_payload(user_id: str, payload: dict) -> CacheRecord:
    """Rebuild a cache record, re-pairing so readers always get matched events."""
    events = []
    for item in payload.get("activities") or []:
        try:
            events.append(ActivityEvent(str(item["event"]), int(item["timestamp"])))
        except (KeyError, TypeError, ValueError):
            logger.debug("Dropping malformed cached event for user %s: %r", user_id, item)
    return CacheRecord(
        user_id=user_id,
        activities=pair_events(events),
        total_duration_ms=int(payload.get("totalDurationMs") or 0),
    )


class InMemoryCacheStore:
    """Process-local store keyed by user id."""

    def __init__(self) -> None:
        self._records: dict[str, dict] = {}

    def load(self, user_id: str) -> CacheRecord | None:
        payload = self._records.get(user_id)
        if payload is None:
            return None
        return record_from_payload(user_id, payload)

    def save(self, record: CacheRecord) -> None:
        self._records[record.user_id] = record.to_payload()


class SQLiteCacheStore:
    """SQLite-backed store holding one JSON payload per user."""

    def __init__(self, db_path: str | Path) -> None:
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._conn.close()
        self._closed = True

    def initialize(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS activity_cache (
              user_id TEXT PRIMARY KEY,
              payload TEXT NOT NULL,
              updated_at_utc TEXT NOT NULL
            );
            """
        )
        self._conn.commit()

    def load(self, user_id: str) -> CacheRecord | None:
        row = self._conn.execute(
            "SELECT payload FROM activity_cache WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return None

        try:
            payload = json.loads(row["payload"])
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable cache entry for user %s", user_id)
            return None
        return record_from_payload(user_id, payload)

    def save(self, record: CacheRecord) -> None:
        self._conn.execute(
            """
            INSERT INTO activity_cache (user_id, payload, updated_at_utc)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id)
            DO UPDATE SET payload=excluded.payload, updated_at_utc=excluded.updated_at_utc
            """,
            (
                record.user_id,
                json.dumps(record.to_payload()),
                utc_now().isoformat(),
            ),
        )
        self._conn.commit()
