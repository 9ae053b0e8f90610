"""
Alert listener: consumes the alert topic and parses records positionally.

Record layout (8 ``;``-delimited fields):
``propertyId;tenantId;type;interface;hash;errorCount;threshold;alertTimes``.
Records with fewer fields or non-integer counts are logged and dropped; the
listener never crashes on them. Valid alerts are logged and passed to an
optional sink (notification routing is pluggable and not defined here).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable

from backend_eagleeye.core.exceptions import MalformedAlertRecord
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.streams.log import EventLog, LogRecord

logger = get_logger(__name__)

ALERT_FIELD_COUNT = 8
DEFAULT_GROUP = "alert-group"


@dataclass(frozen=True)
class AlertRecord:
    """Parsed outbound alert."""

    property_id: str
    tenant_id: str
    transaction_type: str
    interface_id: str
    hash: str
    error_count: int
    threshold: int
    alert_times: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "property_id": self.property_id,
            "tenant_id": self.tenant_id,
            "type": self.transaction_type,
            "interface": self.interface_id,
            "hash": self.hash,
            "error_count": self.error_count,
            "threshold": self.threshold,
            "alert_times": self.alert_times,
        }


def parse_alert_record(value: str) -> AlertRecord:
    parts = value.split(";")
    if len(parts) < ALERT_FIELD_COUNT:
        raise MalformedAlertRecord(
            f"expected {ALERT_FIELD_COUNT} fields, got {len(parts)}"
        )
    try:
        error_count, threshold, alert_times = (int(p) for p in parts[5:8])
    except ValueError as e:
        raise MalformedAlertRecord(f"non-integer count field: {e}") from e
    return AlertRecord(
        property_id=parts[0],
        tenant_id=parts[1],
        transaction_type=parts[2],
        interface_id=parts[3],
        hash=parts[4],
        error_count=error_count,
        threshold=threshold,
        alert_times=alert_times,
    )


class AlertListener:
    """Consumer-group reader of the alert topic; commits its offset after each batch."""

    def __init__(
        self,
        log: EventLog,
        *,
        topic: str,
        group: str = DEFAULT_GROUP,
        sink: Callable[[AlertRecord], None] | None = None,
        batch_size: int = 100,
        poll_interval_sec: float = 0.5,
    ) -> None:
        self._log = log
        self.topic = topic
        self.group = group
        self._sink = sink
        self._batch_size = max(1, batch_size)
        self._poll_interval_sec = poll_interval_sec
        self.received = 0
        self.rejected = 0

    def handle(self, record: LogRecord) -> AlertRecord | None:
        try:
            alert = parse_alert_record(record.value)
        except MalformedAlertRecord as e:
            self.rejected += 1
            logger.error(
                "alert_record_malformed",
                offset=record.offset,
                key=record.key,
                value=record.value,
                error=str(e),
            )
            return None
        self.received += 1
        logger.info("threshold_alert", offset=record.offset, **alert.to_dict())
        if self._sink is not None:
            try:
                self._sink(alert)
            except Exception as e:
                logger.exception("alert_sink_failed", hash=alert.hash, error=str(e))
        return alert

    def poll_once(self) -> int:
        committed = self._log.committed(self.group, self.topic)
        start = 0 if committed is None else committed + 1
        records = self._log.read(self.topic, start, self._batch_size)
        for record in records:
            self.handle(record)
        if records:
            self._log.commit(self.group, self.topic, records[-1].offset)
        return len(records)

    def run(self, stop_event: threading.Event) -> None:
        logger.info("alert_listener_started", topic=self.topic, group=self.group)
        while not stop_event.is_set():
            try:
                read = self.poll_once()
            except Exception as e:
                logger.exception("alert_listener_tick_failed", error=str(e))
                read = 0
            if read < self._batch_size:
                stop_event.wait(timeout=self._poll_interval_sec)
        logger.info("alert_listener_stopped", received=self.received, rejected=self.rejected)
