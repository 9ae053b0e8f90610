"""
Ordered, replayable event log with per-topic offsets and consumer-group commits.

EventLog is the transport seam: config updates are consumed from it and alert
records are published to it. ``send`` is asynchronous and returns a Future that
resolves to the assigned offset once the record is durably appended (the
publish acknowledgment callers wait on with a bound).
"""

from __future__ import annotations

import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from backend_eagleeye.eagleeye_logging import get_logger

logger = get_logger(__name__)

SCHEMA_EVENT_LOG = """
CREATE TABLE IF NOT EXISTS event_log (
    topic TEXT NOT NULL,
    log_offset INTEGER NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    created_at INTEGER,
    PRIMARY KEY (topic, log_offset)
);
"""

SCHEMA_CONSUMER_OFFSETS = """
CREATE TABLE IF NOT EXISTS consumer_offsets (
    group_id TEXT NOT NULL,
    topic TEXT NOT NULL,
    log_offset INTEGER NOT NULL,
    updated_at INTEGER,
    PRIMARY KEY (group_id, topic)
);
"""


@dataclass(frozen=True)
class LogRecord:
    """One record read back from a topic."""

    topic: str
    offset: int
    key: str
    value: str
    timestamp: int | None = None


class EventLog(ABC):
    """Abstract ordered log; offsets are dense per topic and start at 0."""

    @abstractmethod
    def append(self, topic: str, key: str, value: str) -> int:
        """Append synchronously; returns the record's offset."""
        ...

    @abstractmethod
    def read(self, topic: str, from_offset: int, limit: int = 500) -> list[LogRecord]:
        """Return up to ``limit`` records with offset >= from_offset, in offset order."""
        ...

    @abstractmethod
    def send(self, topic: str, key: str, value: str) -> Future:
        """
        Append asynchronously; the future resolves to the offset.

        Must return without waiting on the write: callers bound the whole
        publish, this call included, by their own deadline.
        """
        ...

    @abstractmethod
    def commit(self, group: str, topic: str, offset: int) -> None:
        """Record that ``group`` has processed ``topic`` up to and including ``offset``."""
        ...

    @abstractmethod
    def committed(self, group: str, topic: str) -> int | None:
        ...

    def close(self) -> None:
        return None


class SQLiteEventLog(EventLog):
    """SQLite-backed log; one connection per operation, sends on a single background thread."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec
        self._sender = ThreadPoolExecutor(max_workers=1, thread_name_prefix="event-log-send")
        self._closed = threading.Event()
        self.ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _cursor(self):
        conn = self._connect()
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            for stmt in (SCHEMA_EVENT_LOG, SCHEMA_CONSUMER_OFFSETS):
                cur.executescript(stmt)

    def append(self, topic: str, key: str, value: str) -> int:
        with self._cursor() as cur:
            # Reserve the write lock before computing the next offset
            cur.execute("BEGIN IMMEDIATE")
            cur.execute(
                "SELECT COALESCE(MAX(log_offset), -1) + 1 AS next_offset FROM event_log WHERE topic = ?",
                (topic,),
            )
            offset = int(cur.fetchone()["next_offset"])
            cur.execute(
                """
                INSERT INTO event_log (topic, log_offset, key, value, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (topic, offset, key, value, int(time.time())),
            )
        return offset

    def read(self, topic: str, from_offset: int, limit: int = 500) -> list[LogRecord]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT topic, log_offset, key, value, created_at FROM event_log
                WHERE topic = ? AND log_offset >= ?
                ORDER BY log_offset ASC LIMIT ?
                """,
                (topic, max(0, from_offset), max(1, limit)),
            )
            rows = cur.fetchall()
        return [
            LogRecord(
                topic=row["topic"],
                offset=int(row["log_offset"]),
                key=row["key"],
                value=row["value"],
                timestamp=row["created_at"],
            )
            for row in rows
        ]

    def send(self, topic: str, key: str, value: str) -> Future:
        if self._closed.is_set():
            raise RuntimeError("event log is closed")
        return self._sender.submit(self.append, topic, key, value)

    def commit(self, group: str, topic: str, offset: int) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO consumer_offsets (group_id, topic, log_offset, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(group_id, topic) DO UPDATE SET
                    log_offset = excluded.log_offset,
                    updated_at = excluded.updated_at
                """,
                (group, topic, offset, int(time.time())),
            )

    def committed(self, group: str, topic: str) -> int | None:
        with self._cursor() as cur:
            cur.execute(
                "SELECT log_offset FROM consumer_offsets WHERE group_id = ? AND topic = ?",
                (group, topic),
            )
            row = cur.fetchone()
        return int(row["log_offset"]) if row else None

    def close(self) -> None:
        self._closed.set()
        self._sender.shutdown(wait=True)
