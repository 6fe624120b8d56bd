"""
SQLite Event Store - Append-only event log with optimistic locking

The event store is the source of truth for tenders, bids and their
version histories. It provides:
- Append-only semantics (events never modified or deleted)
- Optimistic locking via per-stream versioning
- Atomic multi-stream appends (entity + version 1, bid vote + tender close)
- Idempotency via command_id (same command = same events)

A content stream's version doubles as the content version number, so the
UNIQUE(stream_id, version) constraint is what makes version numbers
gap-free and duplicate-free under concurrent writers.
"""

import json
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import NamedTuple, Protocol

from tender_quorum.kernel.errors import (
    EventStoreError,
    OperationTimeout,
    StreamVersionConflict,
)
from tender_quorum.kernel.events import Event
from tender_quorum.kernel.logging import get_logger
from tender_quorum.kernel.metrics import (
    events_appended_total,
    stream_version_conflicts_total,
)
from tender_quorum.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

_EVENT_COLUMNS = """
    event_id, stream_id, stream_type, version,
    command_id, event_type, occurred_at, actor_id, payload_json
"""


class StreamAppend(NamedTuple):
    """Events destined for one stream, with the version the caller last saw"""

    stream_id: str
    expected_version: int
    events: list[Event]


class EventStore(Protocol):
    """Operations the domain layer needs from an event store"""

    def append_streams(self, batches: Sequence[StreamAppend]) -> list[Event]: ...

    def append(
        self, stream_id: str, expected_version: int, events: list[Event]
    ) -> list[Event]: ...

    def load_stream(self, stream_id: str) -> list[Event]: ...

    def load_streams(self, stream_ids: Sequence[str]) -> dict[str, list[Event]]: ...

    def get_stream_version(self, stream_id: str) -> int: ...

    def query_events(
        self,
        *,
        stream_type: str | None = None,
        stream_types: Sequence[str] | None = None,
        event_type: str | None = None,
        limit: int | None = None,
    ) -> list[Event]: ...


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Surface driver failures as EventStoreError (an Unavailable)"""
    try:
        yield
    except sqlite3.Error as e:
        raise EventStoreError(f"Event store {operation} failed: {e}") from e


class SQLiteEventStore:
    """
    SQLite-based event store with append-only semantics

    Runs in WAL mode so readers never block the single writer. Every
    public call opens its own connection, which makes one store instance
    safe to share between threads.

    Schema:
    - events table: append-only event log, `position` is the global order
    - Unique constraint: (stream_id, version)
    - Indices: stream, stream_type, event_type, command_id
    """

    def __init__(self, db_path: str | Path, busy_timeout_seconds: float = 5.0) -> None:
        """
        Initialize event store with SQLite database

        Args:
            db_path: Path to SQLite database file
            busy_timeout_seconds: How long a writer waits for the write lock
        """
        self.db_path = Path(db_path)
        self.busy_timeout_seconds = busy_timeout_seconds
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with _store_errors("schema setup"), self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    position INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id TEXT NOT NULL UNIQUE,
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
                "CREATE INDEX IF NOT EXISTS idx_events_stream ON events(stream_id, version)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_stream_type ON events(stream_type)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_command ON events(command_id)"
            )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Open a connection in autocommit mode

        Transactions are opened explicitly (BEGIN IMMEDIATE for writes) so
        the version check and the insert happen under the same lock.
        """
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_seconds,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def append(
        self,
        stream_id: str,
        expected_version: int,
        events: list[Event],
    ) -> list[Event]:
        """Append events to a single stream (see append_streams)"""
        return self.append_streams([StreamAppend(stream_id, expected_version, events)])

    def append_streams(self, batches: Sequence[StreamAppend]) -> list[Event]:
        """
        Append events to several streams in one transaction

        Either every batch is written or none is. For each batch the current
        stream version must equal expected_version and the events must carry
        versions expected_version+1, expected_version+2, ... A batch with no
        events only asserts its stream version (it guards a stream the
        command depends on without writing to it).

        Args:
            batches: One StreamAppend per stream touched by the command

        Returns:
            The appended events (or the previously stored ones if the
            command_id was already processed)

        Raises:
            StreamVersionConflict: If any stream moved past its expected version
            OperationTimeout: If the caller's deadline fired mid-append
            EventStoreError: On other database errors
        """
        batches = list(batches)
        if not any(batch.events for batch in batches):
            return []

        for batch in batches:
            self._check_batch(batch)

        try:
            appended = self._append_locked(batches)
        except sqlite3.Error as e:
            raise EventStoreError(f"Failed to append events: {e}") from e

        for event in appended:
            events_appended_total.labels(
                stream_type=event.stream_type, event_type=event.event_type
            ).inc()
        return appended

    @retry_on_sqlite_lock()
    def _append_locked(self, batches: list[StreamAppend]) -> list[Event]:
        command_id = next(batch.events[0].command_id for batch in batches if batch.events)

        with self._connect() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")

                # Same command already stored: idempotent success
                existing = self._events_by_command_id(conn, command_id)
                if existing:
                    conn.execute("ROLLBACK")
                    logger.info(
                        "Command already processed, returning stored events",
                        command_id=command_id,
                        event_count=len(existing),
                    )
                    return existing

                for batch in batches:
                    current_version = self._get_stream_version(conn, batch.stream_id)
                    if current_version != batch.expected_version:
                        raise StreamVersionConflict(
                            batch.stream_id, batch.expected_version, current_version
                        )
                    for event in batch.events:
                        self._insert(conn, event)

                conn.execute("COMMIT")
                return [event for batch in batches for event in batch.events]

            except StreamVersionConflict as e:
                self._rollback(conn)
                self._record_conflict(batches, e.stream_id)
                raise

            except sqlite3.IntegrityError as e:
                self._rollback(conn)
                error_msg = str(e).lower()
                # Lost a race past the version check (should not happen under
                # BEGIN IMMEDIATE, but the constraint is the last word)
                if "stream_id" in error_msg and "version" in error_msg:
                    stream_id = batches[0].stream_id
                    self._record_conflict(batches, stream_id)
                    raise StreamVersionConflict(
                        stream_id,
                        batches[0].expected_version,
                        self._get_stream_version(conn, stream_id),
                    ) from e
                raise EventStoreError(f"Failed to append events: {e}") from e

            except (OperationTimeout, sqlite3.OperationalError):
                self._rollback(conn)
                raise

            except Exception as e:
                self._rollback(conn)
                raise EventStoreError(f"Unexpected error appending events: {e}") from e

    def _check_batch(self, batch: StreamAppend) -> None:
        for offset, event in enumerate(batch.events, start=1):
            if event.stream_id != batch.stream_id:
                raise EventStoreError(
                    f"Event {event.event_id} belongs to stream {event.stream_id}, "
                    f"not {batch.stream_id}"
                )
            if event.version != batch.expected_version + offset:
                raise EventStoreError(
                    f"Event {event.event_id} has version {event.version}, "
                    f"expected {batch.expected_version + offset}"
                )

    def _insert(self, conn: sqlite3.Connection, event: Event) -> None:
        conn.execute(
            f"INSERT INTO events ({_EVENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                event.event_id,
                event.stream_id,
                event.stream_type,
                event.version,
                event.command_id,
                event.event_type,
                event.occurred_at.isoformat(),
                event.actor_id,
                json.dumps(event.payload),
            ),
        )

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK")

    @staticmethod
    def _record_conflict(batches: list[StreamAppend], stream_id: str) -> None:
        stream_type = next(
            (b.events[0].stream_type for b in batches if b.stream_id == stream_id and b.events),
            "guard",
        )
        stream_version_conflicts_total.labels(stream_type=stream_type).inc()
        logger.info("Stream version conflict", stream_id=stream_id, stream_type=stream_type)

    def load_stream(self, stream_id: str) -> list[Event]:
        """
        Load all events for a stream in version order

        Returns:
            List of events in version order (empty if stream doesn't exist)
        """
        with _store_errors("load_stream"), self._connect() as conn:
            return self._load_stream(conn, stream_id)

    def load_streams(self, stream_ids: Sequence[str]) -> dict[str, list[Event]]:
        """
        Load several streams from one consistent snapshot

        Used to read an entity's lifecycle and content streams together.
        """
        with _store_errors("load_streams"), self._connect() as conn:
            conn.execute("BEGIN")
            try:
                return {
                    stream_id: self._load_stream(conn, stream_id) for stream_id in stream_ids
                }
            finally:
                conn.execute("COMMIT")

    def _load_stream(self, conn: sqlite3.Connection, stream_id: str) -> list[Event]:
        cursor = conn.execute(
            f"SELECT {_EVENT_COLUMNS} FROM events WHERE stream_id = ? ORDER BY version ASC",
            (stream_id,),
        )
        return [self._row_to_event(row) for row in cursor.fetchall()]

    def query_events(
        self,
        *,
        stream_type: str | None = None,
        stream_types: Sequence[str] | None = None,
        event_type: str | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """
        Query events by various criteria

        Args:
            stream_type: Filter by one stream type (e.g., "tender")
            stream_types: Filter by any of several stream types
            event_type: Filter by event type (e.g., "BidApproved")
            limit: Maximum number of events to return

        Returns:
            Matching events in append order
        """
        conditions = []
        params: list[str | int] = []

        types = list(stream_types or [])
        if stream_type:
            types.append(stream_type)
        if types:
            conditions.append(f"stream_type IN ({', '.join('?' for _ in types)})")
            params.extend(types)

        if event_type:
            conditions.append("event_type = ?")
            params.append(event_type)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        query = f"SELECT {_EVENT_COLUMNS} FROM events WHERE {where_clause} ORDER BY position ASC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with _store_errors("query_events"), self._connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_stream_version(self, stream_id: str) -> int:
        """
        Get current version of a stream

        Returns:
            Current stream version (0 if stream doesn't exist)
        """
        with _store_errors("get_stream_version"), self._connect() as conn:
            return self._get_stream_version(conn, stream_id)

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        cursor = conn.execute(
            "SELECT MAX(version) FROM events WHERE stream_id = ?",
            (stream_id,),
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def _events_by_command_id(self, conn: sqlite3.Connection, command_id: str) -> list[Event]:
        cursor = conn.execute(
            f"SELECT {_EVENT_COLUMNS} FROM events WHERE command_id = ? ORDER BY position ASC",
            (command_id,),
        )
        return [self._row_to_event(row) for row in cursor.fetchall()]

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            event_id=row["event_id"],
            stream_id=row["stream_id"],
            stream_type=row["stream_type"],
            version=row["version"],
            command_id=row["command_id"],
            event_type=row["event_type"],
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
            actor_id=row["actor_id"],
            payload=json.loads(row["payload_json"]),
        )

    def count_events(self) -> int:
        """Get total number of events in store"""
        with _store_errors("count_events"), self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]

    def count_streams(self) -> int:
        """Get total number of distinct streams"""
        with _store_errors("count_streams"), self._connect() as conn:
            return conn.execute("SELECT COUNT(DISTINCT stream_id) FROM events").fetchone()[0]
