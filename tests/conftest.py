"""
Pytest fixtures for EagleEye tests. Uses temporary SQLite files for the
threshold changelog and the event log.
"""

from __future__ import annotations

import random

import pytest

from backend_eagleeye.alerts.classifier import BreachClassifier
from backend_eagleeye.alerts.emitter import AlertEmitter
from backend_eagleeye.config.settings import Settings
from backend_eagleeye.streams.log import SQLiteEventLog
from backend_eagleeye.thresholds.fallback import FallbackStore
from backend_eagleeye.thresholds.membership import MembershipFilter
from backend_eagleeye.thresholds.table import SQLiteChangelog, ThresholdTable

ALERT_TOPIC = "eagle-eye.alerts"
CONFIG_TOPIC = "eagle-eye.config"


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at temp files; small filter, short timeouts, listener off."""
    return Settings(
        db_path=tmp_path / "eagleeye.db",
        log_path=tmp_path / "eagleeye_log.db",
        bloom_capacity=1000,
        publish_timeout_sec=1.0,
        ingest_poll_interval_sec=0.05,
        listener_enabled=False,
    )


@pytest.fixture
def event_log(tmp_path):
    log = SQLiteEventLog(tmp_path / "events.db")
    yield log
    log.close()


@pytest.fixture
def membership():
    return MembershipFilter(capacity=1000, false_positive_rate=0.01)


@pytest.fixture
def table(tmp_path):
    """Recovered (ready) threshold table on a temp SQLite file."""
    t = ThresholdTable(SQLiteChangelog(tmp_path / "thresholds.db"))
    t.recover()
    return t


@pytest.fixture
def fallback(membership):
    return FallbackStore(membership, rng=random.Random(42))


@pytest.fixture
def emitter(event_log):
    e = AlertEmitter(event_log, topic=ALERT_TOPIC, publish_timeout_sec=1.0)
    yield e
    e.shutdown(wait=True)


@pytest.fixture
def classifier(membership, table, fallback, emitter):
    return BreachClassifier(membership, table, fallback, emitter)


@pytest.fixture
def engine(settings):
    """Started engine on temp files; stopped after the test."""
    from backend_eagleeye.engine import build_engine

    eng = build_engine(settings, rng=random.Random(1))
    eng.start()
    yield eng
    eng.stop()


@pytest.fixture
def client(engine):
    """FastAPI TestClient over the injected engine (lifespan not run; engine fixture owns it)."""
    from fastapi.testclient import TestClient

    from backend_eagleeye.api_server.server import create_app

    return TestClient(create_app(engine))
