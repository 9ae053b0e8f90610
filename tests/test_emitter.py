"""
Tests for the alert emitter: record format, acknowledgment, failure/timeout accounting, bounded pending.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FuturesTimeoutError
from unittest.mock import MagicMock

from backend_eagleeye.alerts.emitter import AlertEmitter, AlertEvent
from backend_eagleeye.core.hashing import Identity

ALERT_TOPIC = "eagle-eye.alerts"
DIGEST = "2ae1fd9eae05bf85"
IDENTITY = Identity("tenant_0", "property_1", "interface_api", "type_error")


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_record_value_has_eight_positional_fields():
    event = AlertEvent(DIGEST, 75, 50, 1, identity=IDENTITY)
    assert event.to_record_value() == f"property_1;tenant_0;type_error;interface_api;{DIGEST};75;50;1"


def test_record_value_without_identity_keeps_field_count():
    value = AlertEvent(DIGEST, 75, 50, 0).to_record_value()
    assert value == f";;;;{DIGEST};75;50;0"
    assert len(value.split(";")) == 8


def test_emit_publishes_to_alert_topic(emitter, event_log):
    assert emitter.emit(AlertEvent(DIGEST, 75, 50, 0, identity=IDENTITY))
    assert _wait_for(lambda: emitter.stats.published == 1)
    records = event_log.read(ALERT_TOPIC, 0)
    assert [r.key for r in records] == [DIGEST]
    assert emitter.stats.emitted == 1
    assert emitter.stats.failed == 0


def test_send_exception_counted_as_failure():
    log = MagicMock()
    log.send.side_effect = RuntimeError("broker down")
    emitter = AlertEmitter(log, topic=ALERT_TOPIC)
    assert emitter.emit(AlertEvent(DIGEST, 75, 50, 0))
    assert _wait_for(lambda: emitter.stats.failed == 1)
    emitter.shutdown()


def test_ack_exception_counted_as_failure():
    log = MagicMock()

    def failed_send(*args, **kwargs):
        f: Future = Future()
        f.set_exception(OSError("connection reset"))
        return f

    log.send.side_effect = failed_send
    emitter = AlertEmitter(log, topic=ALERT_TOPIC)
    emitter.emit(AlertEvent(DIGEST, 75, 50, 0))
    assert _wait_for(lambda: emitter.stats.failed == 1)
    assert emitter.stats.published == 0
    emitter.shutdown()


def test_timeout_counted_and_bounded():
    log = MagicMock()
    log.send.side_effect = lambda *a, **k: Future()
    emitter = AlertEmitter(log, topic=ALERT_TOPIC, publish_timeout_sec=0.1)
    emitter.emit(AlertEvent(DIGEST, 75, 50, 0))
    start = time.monotonic()
    emitter.shutdown(wait=True)
    assert time.monotonic() - start < 2.0
    assert emitter.stats.timed_out == 1


def test_emit_never_blocks_on_slow_log():
    release = threading.Event()
    log = MagicMock()

    def slow_send(*args, **kwargs):
        release.wait(timeout=5)
        f: Future = Future()
        f.set_result(0)
        return f

    log.send.side_effect = slow_send
    emitter = AlertEmitter(log, topic=ALERT_TOPIC, max_workers=1)
    start = time.monotonic()
    for _ in range(5):
        emitter.emit(AlertEvent(DIGEST, 75, 50, 0))
    assert time.monotonic() - start < 0.5
    release.set()
    emitter.shutdown(wait=True)
    assert emitter.stats.published == 5


def test_pending_limit_drops_excess_events():
    release = threading.Event()
    log = MagicMock()

    def slow_send(*args, **kwargs):
        release.wait(timeout=5)
        f: Future = Future()
        f.set_result(0)
        return f

    log.send.side_effect = slow_send
    emitter = AlertEmitter(log, topic=ALERT_TOPIC, max_workers=1, max_pending=2)
    results = [emitter.emit(AlertEvent(DIGEST, 75, 50, 0)) for _ in range(4)]
    assert results == [True, True, False, False]
    assert emitter.stats.dropped == 2
    release.set()
    emitter.shutdown(wait=True)
    assert emitter.stats.published == 2


def test_emit_after_shutdown_is_dropped(event_log):
    emitter = AlertEmitter(event_log, topic=ALERT_TOPIC)
    emitter.shutdown()
    assert emitter.emit(AlertEvent(DIGEST, 75, 50, 0)) is False
    assert emitter.stats.dropped == 1


def test_slow_send_counts_against_publish_timeout():
    ack = MagicMock()
    ack.result.side_effect = FuturesTimeoutError()
    log = MagicMock()

    def slow_send(*args, **kwargs):
        time.sleep(0.3)
        return ack

    log.send.side_effect = slow_send
    emitter = AlertEmitter(log, topic=ALERT_TOPIC, publish_timeout_sec=0.2)
    emitter.emit(AlertEvent(DIGEST, 75, 50, 0))
    emitter.shutdown(wait=True)
    assert emitter.stats.timed_out == 1
    assert ack.result.call_args.kwargs["timeout"] == 0.0
    ack.cancel.assert_called_once()
