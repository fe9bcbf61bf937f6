"""SQLite storage for history events."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol
from uuid import UUID

import aiosqlite

from microsaas.events.models import Event
from microsaas.events.payloads import dumps_payload, loads_payload
from microsaas.history.errors import HistoryDecodeError, HistoryStoreError

logger = logging.getLogger(__name__)

__all__ = ["HistoryStorer", "SqliteHistoryStorer"]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS history_events (
    history_event_id  TEXT PRIMARY KEY,
    user_id           TEXT NOT NULL,
    event_type        TEXT NOT NULL,
    event_time        TEXT NOT NULL,
    event_data        TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_he_user_time ON history_events(user_id, event_time);
"""


def _format_time(value: datetime) -> str:
    """UTC ISO-8601 with fixed precision so rows sort by text. Naive times are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class HistoryStorer(Protocol):
    """Persistence of history events."""

    async def store(self, event: Event) -> None:
        """Persist event. Raises on failure."""
        ...

    async def list(self, user_id: UUID, limit: int) -> list[Event]:
        """Most recent events of user_id, newest first. Payloads come back as generic JSON."""
        ...


class SqliteHistoryStorer:
    """aiosqlite-backed HistoryStorer. One connection per instance."""

    def __init__(self, db_path: Path, busy_timeout: int = 5000) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._conn: aiosqlite.Connection | None = None

    async def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(str(self._db_path))
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA synchronous=NORMAL")
            await self._conn.execute(f"PRAGMA busy_timeout={self._busy_timeout}")
            await self._conn.executescript(_SCHEMA)
            await self._conn.commit()
        return self._conn

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def store(self, event: Event) -> None:
        try:
            data = dumps_payload(event.data)
        except (TypeError, ValueError) as e:
            raise HistoryStoreError(f"failed to store history event: {e}") from e

        conn = await self._ensure_conn()
        try:
            await conn.execute(
                """
                INSERT INTO history_events (history_event_id, user_id, event_type, event_time, event_data)
                VALUES (?, ?, ?, ?, ?)
                """,
                (str(event.id), str(event.user), event.type, _format_time(event.time), data),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise HistoryStoreError(f"failed to store history event: {e}") from e

    async def list(self, user_id: UUID, limit: int) -> list[Event]:
        conn = await self._ensure_conn()
        try:
            cursor = await conn.execute(
                """
                SELECT history_event_id, user_id, event_type, event_time, event_data
                FROM history_events
                WHERE user_id = ?
                ORDER BY event_time DESC
                LIMIT ?
                """,
                (str(user_id), limit),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise HistoryStoreError(f"failed to list history events: {e}") from e

        events: list[Event] = []
        for event_id, user, event_type, event_time, raw in rows:
            try:
                data = loads_payload(raw)
            except json.JSONDecodeError as e:
                raise HistoryDecodeError(f"history event {event_id} has malformed data: {e}") from e
            events.append(
                Event(
                    id=UUID(event_id),
                    type=event_type,
                    time=datetime.fromisoformat(event_time),
                    data=data,
                    user=UUID(user),
                )
            )
        return events
