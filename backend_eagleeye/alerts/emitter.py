"""
Alert emitter: fire-and-forget, timeout-bounded publish of breach events.

``emit`` hands the event to a bounded worker pool and returns immediately; the
worker sends the record to the alert topic and waits at most
``publish_timeout_sec`` (send call included) for the acknowledgment. Timeouts and failures are
logged and counted, never raised to the caller, never retried. When more than
``max_pending`` emissions are queued or running, new events are dropped (and
counted) instead of growing the queue.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import asdict, dataclass

from backend_eagleeye.core.exceptions import PublishFailure, PublishTimeout
from backend_eagleeye.core.hashing import Identity
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.streams.log import EventLog

logger = get_logger(__name__)

DEFAULT_PUBLISH_TIMEOUT_SEC = 5.0
DEFAULT_MAX_WORKERS = 4
DEFAULT_MAX_PENDING = 1024
ALERT_FIELD_DELIMITER = ";"


@dataclass(frozen=True)
class AlertEvent:
    """One threshold breach to publish; keyed by digest."""

    digest: str
    error_count: int
    threshold: int
    breach_count: int
    identity: Identity | None = None

    def to_record_value(self) -> str:
        """``propertyId;tenantId;type;interface;hash;errorCount;threshold;alertTimes``."""
        ident = self.identity
        fields = (
            ident.property_id if ident else "",
            ident.tenant_id if ident else "",
            ident.transaction_type if ident else "",
            ident.interface_id if ident else "",
            self.digest,
            str(self.error_count),
            str(self.threshold),
            str(self.breach_count),
        )
        return ALERT_FIELD_DELIMITER.join(fields)


@dataclass
class EmitterStats:
    emitted: int = 0
    published: int = 0
    failed: int = 0
    timed_out: int = 0
    dropped: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class AlertEmitter:
    """Publishes AlertEvents to the alert topic on a bounded worker pool."""

    def __init__(
        self,
        log: EventLog,
        *,
        topic: str,
        publish_timeout_sec: float = DEFAULT_PUBLISH_TIMEOUT_SEC,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self._log = log
        self.topic = topic
        self.publish_timeout_sec = publish_timeout_sec
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="alert-publisher",
        )
        self._slots = threading.BoundedSemaphore(max(1, max_pending))
        self._stats = EmitterStats()
        self._stats_lock = threading.Lock()

    @property
    def stats(self) -> EmitterStats:
        with self._stats_lock:
            return EmitterStats(**self._stats.to_dict())

    def _count(self, field: str) -> None:
        with self._stats_lock:
            setattr(self._stats, field, getattr(self._stats, field) + 1)

    def emit(self, event: AlertEvent) -> bool:
        """Schedule publication; never blocks on the log. Returns False if dropped."""
        if not self._slots.acquire(blocking=False):
            self._count("dropped")
            logger.warning("alert_emit_dropped", hash=event.digest, reason="max_pending")
            return False
        try:
            future = self._executor.submit(self._publish, event)
        except RuntimeError:
            self._slots.release()
            self._count("dropped")
            logger.warning("alert_emit_dropped", hash=event.digest, reason="shutdown")
            return False
        future.add_done_callback(lambda _f: self._slots.release())
        self._count("emitted")
        return True

    def _deliver(self, event: AlertEvent) -> int:
        deadline = time.monotonic() + self.publish_timeout_sec
        try:
            ack = self._log.send(self.topic, event.digest, event.to_record_value())
        except Exception as e:
            raise PublishFailure(f"{type(e).__name__}: {e}") from e
        try:
            return ack.result(timeout=max(0.0, deadline - time.monotonic()))
        except FuturesTimeoutError as e:
            ack.cancel()
            raise PublishTimeout(f"no acknowledgment within {self.publish_timeout_sec}s") from e
        except Exception as e:
            raise PublishFailure(f"{type(e).__name__}: {e}") from e

    def _publish(self, event: AlertEvent) -> None:
        try:
            offset = self._deliver(event)
        except PublishTimeout as e:
            self._count("timed_out")
            logger.error(
                "alert_publish_timeout",
                hash=event.digest,
                topic=self.topic,
                timeout_sec=self.publish_timeout_sec,
                error=str(e),
            )
            return
        except PublishFailure as e:
            self._count("failed")
            logger.error("alert_publish_failed", hash=event.digest, topic=self.topic, error=str(e))
            return
        self._count("published")
        logger.info(
            "alert_published",
            hash=event.digest,
            topic=self.topic,
            offset=offset,
            error_count=event.error_count,
            threshold=event.threshold,
        )

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting events; in-flight publishes finish within their timeout."""
        self._executor.shutdown(wait=wait)
