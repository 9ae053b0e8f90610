"""
Config ingest loop: config topic -> membership filter + threshold table.

Reads configuration update records (key = digest, value =
``digest:threshold:breachCount``) in publish order and, for each one, adds the
digest to the membership filter and then puts the record into the threshold
table. It is the only writer of both. Resumes from the table's last applied
offset, so a restart replays exactly what the changelog has not recorded.
"""

from __future__ import annotations

import threading
import time

from backend_eagleeye.core.exceptions import MalformedThresholdRecord, StoreUnavailable
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.streams.log import EventLog, LogRecord
from backend_eagleeye.thresholds.membership import MembershipFilter
from backend_eagleeye.thresholds.models import parse_threshold_value
from backend_eagleeye.thresholds.table import STATE_UNAVAILABLE, ThresholdTable

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 500
DEFAULT_POLL_INTERVAL_SEC = 0.5
DEFAULT_RETRY_BACKOFF_SEC = 1.0


class ConfigIngestLoop:
    """Single-writer consumer of the config topic."""

    def __init__(
        self,
        log: EventLog,
        table: ThresholdTable,
        membership: MembershipFilter,
        *,
        topic: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        poll_interval_sec: float = DEFAULT_POLL_INTERVAL_SEC,
        retry_backoff_sec: float = DEFAULT_RETRY_BACKOFF_SEC,
    ) -> None:
        self._log = log
        self._table = table
        self._membership = membership
        self.topic = topic
        self._batch_size = max(1, batch_size)
        self._poll_interval_sec = max(0.0, poll_interval_sec)
        self._retry_backoff_sec = max(0.0, retry_backoff_sec)
        self._next_offset: int | None = None
        self._over_capacity_logged = False
        self._last_read = 0
        self.applied_count = 0
        self.skipped_count = 0

    @property
    def next_offset(self) -> int:
        if self._next_offset is None:
            self._next_offset = self._table.last_applied_offset + 1
        return self._next_offset

    def apply(self, record: LogRecord) -> bool:
        """
        Apply one config record. Returns False when the record is malformed
        (logged and skipped). StoreUnavailable propagates so the caller retries.
        """
        try:
            threshold = parse_threshold_value(record.value)
            if threshold.digest != record.key:
                raise MalformedThresholdRecord(
                    f"key {record.key!r} does not match value digest {threshold.digest!r}"
                )
        except MalformedThresholdRecord as e:
            self.skipped_count += 1
            logger.warning(
                "config_record_malformed",
                offset=record.offset,
                key=record.key,
                value=record.value,
                error=str(e),
            )
            return False

        # Filter strictly before table: the filter must never under-report
        self._membership.add(threshold.digest)
        self._table.put(threshold.digest, threshold, source_offset=record.offset)
        self.applied_count += 1
        logger.debug(
            "threshold_loaded",
            hash=threshold.digest,
            threshold=threshold.threshold,
            alert_times=threshold.breach_count,
            offset=record.offset,
        )
        if self._membership.over_capacity and not self._over_capacity_logged:
            self._over_capacity_logged = True
            logger.warning(
                "membership_filter_over_capacity",
                capacity=self._membership.capacity,
                count=self._membership.count,
            )
        return True

    def recover_table(self) -> bool:
        """
        Rebuild the table (and the filter alongside it) from its changelog.
        Returns False if the store is still unreachable.
        """
        try:
            recovered = self._table.recover(on_record=self._membership.add)
        except StoreUnavailable as e:
            logger.warning("config_ingest_recovery_failed", error=str(e))
            return False
        # Resume from wherever the recovered changelog leaves off
        self._next_offset = None
        logger.info("config_ingest_recovered", records=recovered, from_offset=self.next_offset)
        return True

    def poll_once(self) -> int:
        """Read and apply one batch. Returns number of records applied."""
        records = self._log.read(self.topic, self.next_offset, self._batch_size)
        self._last_read = len(records)
        applied = 0
        for record in records:
            try:
                if self.apply(record):
                    applied += 1
            except StoreUnavailable as e:
                logger.warning(
                    "config_ingest_store_unavailable",
                    offset=record.offset,
                    error=str(e),
                )
                # Retry from this record on the next poll
                raise
            self._next_offset = record.offset + 1
        return applied

    def run(self, stop_event: threading.Event) -> None:
        """Consume until stop_event is set. Per-tick failures are logged; the loop continues."""
        logger.info("config_ingest_started", topic=self.topic, from_offset=self.next_offset)
        while not stop_event.is_set():
            wait = self._poll_interval_sec
            try:
                if self._table.state == STATE_UNAVAILABLE and not self.recover_table():
                    wait = self._retry_backoff_sec
                else:
                    self.poll_once()
                    if self._last_read >= self._batch_size:
                        wait = 0.0
            except StoreUnavailable:
                wait = self._retry_backoff_sec
            except Exception as e:
                logger.exception("config_ingest_tick_failed", error=str(e))
                wait = self._retry_backoff_sec
            if wait:
                stop_event.wait(timeout=wait)
        logger.info(
            "config_ingest_stopped",
            applied=self.applied_count,
            skipped=self.skipped_count,
            next_offset=self.next_offset,
        )


def run_config_ingest(loop: ConfigIngestLoop, stop_event: threading.Event) -> None:
    """Thread target for the ingest loop."""
    start = time.monotonic()
    try:
        loop.run(stop_event)
    finally:
        logger.debug("config_ingest_thread_exit", uptime_sec=round(time.monotonic() - start, 1))
