"""
Composition root: builds, owns, and runs every component of the alerting core.

No component looks anything up globally; the engine constructs the membership
filter, threshold table, fallback store, emitter, classifier, ingest loop, and
listener, and passes them to each other explicitly.

Lifecycle:
- start(): recover the threshold table (rebuilding the membership filter)
  before anything is classified, then start the ingest and listener threads.
  If recovery fails the table stays unavailable and the classifier falls back.
- stop(): stop threads (bounded join), drain the emitter (bounded by the
  publish timeout), close storage.
"""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field
from typing import Any

from backend_eagleeye.alerts.classifier import MODE_FALLBACK, BreachClassifier, Classification
from backend_eagleeye.alerts.emitter import AlertEmitter
from backend_eagleeye.alerts.listener import AlertListener
from backend_eagleeye.alerts.observation import Observation
from backend_eagleeye.config.settings import Settings
from backend_eagleeye.core.exceptions import StoreUnavailable
from backend_eagleeye.core.hashing import hash_composite_key
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.streams.ingest import ConfigIngestLoop, run_config_ingest
from backend_eagleeye.streams.log import EventLog, SQLiteEventLog
from backend_eagleeye.thresholds.fallback import FallbackStore
from backend_eagleeye.thresholds.membership import MembershipFilter
from backend_eagleeye.thresholds.models import ThresholdRecord
from backend_eagleeye.thresholds.table import SQLiteChangelog, ThresholdTable

logger = get_logger(__name__)

SHUTDOWN_JOIN_TIMEOUT_SEC = 15.0


@dataclass
class AlertEngine:
    """All long-lived components of one service process."""

    settings: Settings
    event_log: EventLog
    membership: MembershipFilter
    table: ThresholdTable
    fallback: FallbackStore
    emitter: AlertEmitter
    classifier: BreachClassifier
    ingest: ConfigIngestLoop
    listener: AlertListener | None = None
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _threads: list[threading.Thread] = field(default_factory=list, repr=False)
    _started: bool = field(default=False, repr=False)

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        try:
            self.table.recover(on_record=self.membership.add)
        except StoreUnavailable as e:
            logger.error("engine_table_recovery_failed", error=str(e))
        self._spawn("config-ingest", run_config_ingest, self.ingest, self._stop_event)
        if self.listener is not None:
            self._spawn("alert-listener", self.listener.run, self._stop_event)
        logger.info(
            "engine_started",
            table_state=self.table.state,
            thresholds=len(self.table),
            listener=self.listener is not None,
        )

    def _spawn(self, name: str, target: Any, *args: Any) -> None:
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)

    def stop(self) -> None:
        if not self._started:
            return
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT_SEC)
            if thread.is_alive():
                logger.warning("engine_thread_shutdown_timeout", thread=thread.name, timeout_sec=SHUTDOWN_JOIN_TIMEOUT_SEC)
        self.emitter.shutdown(wait=True)
        self.table.close()
        self.event_log.close()
        self._started = False
        logger.info("engine_stopped", alerts=self.emitter.stats.to_dict())

    def classify(self, observation: Observation) -> Classification:
        return self.classifier.classify(
            observation.digest,
            observation.error_count,
            identity=observation.identity,
        )

    def enable_test_mode(self) -> bool:
        """Administrative switch into fallback mode with synthetic thresholds."""
        return self.classifier.enable_fallback(reason="admin")

    def publish_threshold(self, composite_key: str, threshold: int, alert_times: int = 0) -> tuple[str, int]:
        """Append a config update record for ``composite_key``; returns (digest, offset)."""
        digest = hash_composite_key(composite_key)
        record = ThresholdRecord(digest=digest, threshold=threshold, breach_count=alert_times)
        offset = self.event_log.append(self.settings.config_topic, digest, record.to_value())
        logger.info("threshold_published", hash=digest, threshold=threshold, alert_times=alert_times, offset=offset)
        return digest, offset

    def status(self) -> dict[str, Any]:
        return {
            "mode": self.classifier.mode,
            "table_state": self.table.state,
            "thresholds": len(self.fallback) if self.classifier.mode == MODE_FALLBACK else len(self.table),
            "fallback_transitions": self.classifier.fallback_transitions,
            "alerts": self.emitter.stats.to_dict(),
        }


def build_engine(
    settings: Settings,
    *,
    event_log: EventLog | None = None,
    rng: random.Random | None = None,
) -> AlertEngine:
    """Construct every component from settings. Nothing is started."""
    log = event_log or SQLiteEventLog(settings.log_path)
    membership = MembershipFilter(settings.bloom_capacity, settings.bloom_fp_rate)
    table = ThresholdTable(
        SQLiteChangelog(settings.db_path),
        checkpoint_every=settings.checkpoint_every,
    )
    fallback = FallbackStore(
        membership,
        seed_count=settings.fallback_seed_count,
        threshold_min=settings.fallback_threshold_min,
        threshold_max=settings.fallback_threshold_max,
        rng=rng,
    )
    emitter = AlertEmitter(
        log,
        topic=settings.alert_topic,
        publish_timeout_sec=settings.publish_timeout_sec,
        max_workers=settings.alert_workers,
        max_pending=settings.alert_max_pending,
    )
    classifier = BreachClassifier(membership, table, fallback, emitter)
    ingest = ConfigIngestLoop(
        log,
        table,
        membership,
        topic=settings.config_topic,
        batch_size=settings.ingest_batch_size,
        poll_interval_sec=settings.ingest_poll_interval_sec,
    )
    listener = AlertListener(log, topic=settings.alert_topic) if settings.listener_enabled else None
    return AlertEngine(
        settings=settings,
        event_log=log,
        membership=membership,
        table=table,
        fallback=fallback,
        emitter=emitter,
        classifier=classifier,
        ingest=ingest,
        listener=listener,
    )
