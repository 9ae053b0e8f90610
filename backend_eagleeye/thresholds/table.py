"""
Threshold table: digest -> ThresholdRecord, durable via an append-only changelog.

Reads are served from an in-memory map of immutable records; a put appends to
the changelog first and then replaces the map entry, so concurrent readers see
either the old or the new record, never a partial one. On startup the table is
rebuilt from the last checkpoint plus the changelog tail, in original order,
and only then starts serving reads.

MVP backend is SQLite (SQLiteChangelog); swap by implementing ChangelogBackend.
"""

from __future__ import annotations

import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

from backend_eagleeye.core.exceptions import MalformedThresholdRecord, StoreUnavailable
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.thresholds.models import ThresholdRecord, parse_threshold_value

logger = get_logger(__name__)

STATE_RECOVERING = "recovering"
STATE_READY = "ready"
STATE_UNAVAILABLE = "unavailable"

DEFAULT_CHECKPOINT_EVERY = 10_000
NO_OFFSET = -1

# -----------------------------------------------------------------------------
# Schema (SQLite)
# -----------------------------------------------------------------------------

SCHEMA_CHANGELOG = """
CREATE TABLE IF NOT EXISTS threshold_changelog (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    digest TEXT NOT NULL,
    value TEXT,
    source_offset INTEGER NOT NULL,
    created_at INTEGER
);
"""

SCHEMA_SNAPSHOT = """
CREATE TABLE IF NOT EXISTS threshold_snapshot (
    digest TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

SCHEMA_META = """
CREATE TABLE IF NOT EXISTS threshold_meta (
    key TEXT PRIMARY KEY,
    value INTEGER NOT NULL
);
"""


@dataclass(frozen=True)
class ChangelogEntry:
    """One changelog row; value None is a tombstone (explicit drop)."""

    seq: int
    digest: str
    value: str | None
    source_offset: int


@dataclass
class Checkpoint:
    seq: int
    last_offset: int
    entries: dict[str, str]


# -----------------------------------------------------------------------------
# Abstract backend
# -----------------------------------------------------------------------------


class ChangelogBackend(ABC):
    """Durable storage for the threshold table: append-only changelog + checkpoint."""

    @abstractmethod
    def ensure_schema(self) -> None:
        ...

    @abstractmethod
    def append(self, digest: str, value: str | None, source_offset: int) -> int:
        """Append one entry; returns its sequence number."""
        ...

    @abstractmethod
    def load_checkpoint(self) -> Checkpoint:
        ...

    @abstractmethod
    def read_changelog(self, after_seq: int) -> Iterator[ChangelogEntry]:
        """Yield entries with seq > after_seq in seq order."""
        ...

    @abstractmethod
    def write_checkpoint(self, entries: dict[str, str], seq: int, last_offset: int) -> None:
        """Replace the snapshot and drop changelog entries with seq <= seq, atomically."""
        ...

    def close(self) -> None:
        return None


# -----------------------------------------------------------------------------
# SQLite backend
# -----------------------------------------------------------------------------


class SQLiteChangelog(ChangelogBackend):
    """SQLite implementation; single file, one connection per operation."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec

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
            for stmt in (SCHEMA_CHANGELOG, SCHEMA_SNAPSHOT, SCHEMA_META):
                cur.executescript(stmt)

    def append(self, digest: str, value: str | None, source_offset: int) -> int:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO threshold_changelog (digest, value, source_offset, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (digest, value, source_offset, int(time.time())),
            )
            return int(cur.lastrowid)

    def load_checkpoint(self) -> Checkpoint:
        with self._cursor() as cur:
            cur.execute("SELECT key, value FROM threshold_meta")
            meta = {row["key"]: int(row["value"]) for row in cur.fetchall()}
            cur.execute("SELECT digest, value FROM threshold_snapshot")
            entries = {row["digest"]: row["value"] for row in cur.fetchall()}
        return Checkpoint(
            seq=meta.get("checkpoint_seq", 0),
            last_offset=meta.get("last_offset", NO_OFFSET),
            entries=entries,
        )

    def read_changelog(self, after_seq: int) -> Iterator[ChangelogEntry]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT seq, digest, value, source_offset FROM threshold_changelog
                WHERE seq > ? ORDER BY seq ASC
                """,
                (after_seq,),
            )
            rows = cur.fetchall()
        for row in rows:
            yield ChangelogEntry(
                seq=int(row["seq"]),
                digest=row["digest"],
                value=row["value"],
                source_offset=int(row["source_offset"]),
            )

    def write_checkpoint(self, entries: dict[str, str], seq: int, last_offset: int) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM threshold_snapshot")
            cur.executemany(
                "INSERT INTO threshold_snapshot (digest, value) VALUES (?, ?)",
                list(entries.items()),
            )
            cur.executemany(
                "INSERT OR REPLACE INTO threshold_meta (key, value) VALUES (?, ?)",
                [("checkpoint_seq", seq), ("last_offset", last_offset)],
            )
            cur.execute("DELETE FROM threshold_changelog WHERE seq <= ?", (seq,))


# -----------------------------------------------------------------------------
# Table
# -----------------------------------------------------------------------------


class ThresholdTable:
    """
    In-memory threshold map kept durable by a ChangelogBackend.

    Single writer (config ingest loop); any number of concurrent readers.
    ``get`` raises StoreUnavailable until ``recover`` has completed, or after
    the backend failed.
    """

    def __init__(
        self,
        backend: ChangelogBackend,
        *,
        checkpoint_every: int = DEFAULT_CHECKPOINT_EVERY,
    ) -> None:
        self._backend = backend
        self._checkpoint_every = max(1, checkpoint_every)
        self._records: dict[str, ThresholdRecord] = {}
        self._write_lock = threading.Lock()
        self._state = STATE_RECOVERING
        self._last_seq = 0
        self._last_offset = NO_OFFSET
        self._puts_since_checkpoint = 0

    @property
    def state(self) -> str:
        return self._state

    @property
    def last_applied_offset(self) -> int:
        """Highest source-log offset applied (-1 when nothing applied yet)."""
        return self._last_offset

    def __len__(self) -> int:
        return len(self._records)

    def digests(self) -> list[str]:
        return list(self._records)

    def mark_unavailable(self, reason: str) -> None:
        if self._state != STATE_UNAVAILABLE:
            logger.error("threshold_table_unavailable", reason=reason)
        self._state = STATE_UNAVAILABLE

    def recover(self, on_record: Callable[[str], None] | None = None) -> int:
        """
        Rebuild from checkpoint + changelog tail, then mark ready.

        ``on_record(digest)`` is called for every recovered digest before the
        table starts serving reads (used to rebuild the membership filter).
        Returns the number of records recovered.
        """
        start = time.monotonic()
        # A retry after an outage keeps reporting unavailable until it succeeds
        if self._state != STATE_UNAVAILABLE:
            self._state = STATE_RECOVERING
        try:
            self._backend.ensure_schema()
            checkpoint = self._backend.load_checkpoint()
            records: dict[str, ThresholdRecord] = {}
            for digest, value in checkpoint.entries.items():
                records[digest] = parse_threshold_value(value)
            last_seq = checkpoint.seq
            last_offset = checkpoint.last_offset
            replayed = 0
            for entry in self._backend.read_changelog(checkpoint.seq):
                if entry.value is None:
                    records.pop(entry.digest, None)
                else:
                    records[entry.digest] = parse_threshold_value(entry.value)
                last_seq = entry.seq
                last_offset = max(last_offset, entry.source_offset)
                replayed += 1
        except (sqlite3.Error, OSError, MalformedThresholdRecord) as e:
            self.mark_unavailable(str(e))
            raise StoreUnavailable(f"threshold table recovery failed: {e}") from e

        if on_record is not None:
            for digest in records:
                on_record(digest)
        with self._write_lock:
            self._records = records
            self._last_seq = last_seq
            self._last_offset = last_offset
            self._puts_since_checkpoint = replayed
            self._state = STATE_READY
        logger.info(
            "threshold_table_recovered",
            records=len(records),
            checkpoint_records=len(checkpoint.entries),
            replayed=replayed,
            last_offset=last_offset,
            elapsed_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return len(records)

    def get(self, digest: str) -> ThresholdRecord | None:
        if self._state != STATE_READY:
            raise StoreUnavailable(f"threshold table is {self._state}")
        return self._records.get(digest)

    def put(self, digest: str, record: ThresholdRecord, source_offset: int | None = None) -> None:
        """Replace-or-insert; durable once this returns."""
        self._write(digest, record, source_offset)

    def drop(self, digest: str, source_offset: int | None = None) -> bool:
        """Remove an entry (tombstone in the changelog). Returns True if it existed."""
        existed = digest in self._records
        self._write(digest, None, source_offset)
        return existed

    def _write(self, digest: str, record: ThresholdRecord | None, source_offset: int | None) -> None:
        if self._state != STATE_READY:
            raise StoreUnavailable(f"threshold table is {self._state}")
        with self._write_lock:
            offset = self._last_offset if source_offset is None else source_offset
            value = record.to_value() if record is not None else None
            try:
                seq = self._backend.append(digest, value, offset)
            except (sqlite3.Error, OSError) as e:
                raise StoreUnavailable(f"changelog append failed: {e}") from e
            if record is None:
                self._records.pop(digest, None)
            else:
                self._records[digest] = record
            self._last_seq = seq
            self._last_offset = max(self._last_offset, offset)
            self._puts_since_checkpoint += 1
            due = self._puts_since_checkpoint >= self._checkpoint_every
        if due:
            self.checkpoint()

    def checkpoint(self) -> None:
        """Snapshot the current map and compact the changelog."""
        with self._write_lock:
            entries = {d: r.to_value() for d, r in self._records.items()}
            seq = self._last_seq
            offset = self._last_offset
            try:
                self._backend.write_checkpoint(entries, seq, offset)
            except (sqlite3.Error, OSError) as e:
                logger.warning("threshold_checkpoint_failed", error=str(e), seq=seq)
                return
            self._puts_since_checkpoint = 0
        logger.info("threshold_checkpoint_written", records=len(entries), seq=seq, last_offset=offset)

    def close(self) -> None:
        self._backend.close()
