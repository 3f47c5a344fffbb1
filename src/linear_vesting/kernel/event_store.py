"""
SQLite Event Store - Append-only ledger journal

The journal is the source of truth for the ledger. It provides:
- Append-only semantics (events never modified or deleted)
- Optimistic locking via stream versioning
- Staged appends that stay uncommitted while an external transfer runs

Every event carries the command_id of the call that produced it, so a
batch of GrantCreated events can be traced back to one add_grants call.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from linear_vesting.kernel.errors import (
    EventStoreError,
    JournalCommitFailed,
    StreamVersionConflict,
)
from linear_vesting.kernel.events import JOURNAL_COLUMNS, Event
from linear_vesting.kernel.logging import get_logger
from linear_vesting.kernel.metrics import events_appended_total

logger = get_logger(__name__)

_EVENT_COLUMNS = ", ".join(JOURNAL_COLUMNS)
_PLACEHOLDERS = ", ".join("?" for _ in JOURNAL_COLUMNS)


class SQLiteEventStore:
    """
    SQLite-based event store with append-only semantics

    Uses WAL mode for crash safety and concurrent readers.

    Schema:
    - events table: append-only event log
    - Unique constraint: (stream_id, version)
    - Indices: stream_id, event_type
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    event_id TEXT PRIMARY KEY,
                    stream_id TEXT NOT NULL,
                    stream_type TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    command_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    actor_id TEXT,
                    payload_json TEXT NOT NULL,

                    UNIQUE(stream_id, version)
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_stream "
                "ON events(stream_id, version)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type)"
            )

            conn.commit()

    @contextmanager
    def _connect(self, autocommit: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database connections

        autocommit=True hands transaction control to the caller
        (explicit BEGIN/COMMIT/ROLLBACK).
        """
        if autocommit:
            conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        else:
            conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def staged_append(
        self,
        stream_id: str,
        expected_version: int,
        events: list[Event],
    ) -> Iterator[list[Event]]:
        """
        Insert events inside an open write transaction

        The transaction commits when the with-block exits normally and rolls
        back if it raises, so work done inside the block (such as an external
        transfer) and the journal write succeed or fail together. The write
        lock is taken up front, so concurrent writers wait rather than
        interleave.

        Raises:
            StreamVersionConflict: If stream version doesn't match expected
            JournalCommitFailed: If COMMIT fails after the block has run
            EventStoreError: On other database errors
        """
        if not events:
            raise EventStoreError("Nothing to append")

        with self._connect(autocommit=True) as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise EventStoreError(f"Failed to open journal transaction: {e}") from e

            try:
                current_version = self._get_stream_version(conn, stream_id)
                if current_version != expected_version:
                    raise StreamVersionConflict(
                        stream_id, expected_version, current_version
                    )
                self._insert_events(conn, events)
            except StreamVersionConflict:
                conn.execute("ROLLBACK")
                raise
            except sqlite3.IntegrityError as e:
                conn.execute("ROLLBACK")
                if "version" in str(e).lower():
                    raise StreamVersionConflict(
                        stream_id, expected_version, self.get_stream_version(stream_id)
                    ) from e
                raise EventStoreError(f"Failed to append events: {e}") from e
            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                raise EventStoreError(f"Failed to append events: {e}") from e

            try:
                yield events
            except BaseException:
                conn.execute("ROLLBACK")
                logger.debug(
                    "Staged append rolled back",
                    stream_id=stream_id,
                    event_count=len(events),
                )
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                # Closing the connection discards the open transaction
                raise JournalCommitFailed(f"Failed to commit events: {e}") from e

        for event in events:
            events_appended_total.labels(event_type=event.event_type).inc()

    def _insert_events(self, conn: sqlite3.Connection, events: list[Event]) -> None:
        conn.executemany(
            f"INSERT INTO events ({_EVENT_COLUMNS}) VALUES ({_PLACEHOLDERS})",
            [event.to_row() for event in events],
        )

    def load_stream(self, stream_id: str) -> list[Event]:
        """Load all events for a stream in version order"""
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events "
                "WHERE stream_id = ? ORDER BY version ASC",
                (stream_id,),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_stream_version(self, stream_id: str) -> int:
        """Current version of a stream (0 if it doesn't exist)"""
        with self._connect() as conn:
            return self._get_stream_version(conn, stream_id)

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        cursor = conn.execute(
            "SELECT MAX(version) FROM events WHERE stream_id = ?",
            (stream_id,),
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event.from_row(row)
