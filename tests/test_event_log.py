"""
Tests for the SQLite event log: dense per-topic offsets, ordered reads, async send, commits.
"""

from __future__ import annotations

import pytest

from backend_eagleeye.streams.log import SQLiteEventLog


def test_offsets_dense_per_topic(event_log):
    assert event_log.append("a", "k1", "v1") == 0
    assert event_log.append("a", "k2", "v2") == 1
    assert event_log.append("b", "k1", "v1") == 0
    records = event_log.read("a", 0)
    assert [(r.offset, r.key, r.value) for r in records] == [(0, "k1", "v1"), (1, "k2", "v2")]


def test_read_from_offset_with_limit(event_log):
    for i in range(10):
        event_log.append("t", f"k{i}", f"v{i}")
    records = event_log.read("t", 4, limit=3)
    assert [r.offset for r in records] == [4, 5, 6]
    assert event_log.read("t", 10) == []


def test_send_resolves_to_offset(event_log):
    event_log.append("t", "k", "first")
    future = event_log.send("t", "k", "second")
    assert future.result(timeout=5) == 1
    assert event_log.read("t", 1)[0].value == "second"


def test_send_after_close_raises(tmp_path):
    log = SQLiteEventLog(tmp_path / "closed.db")
    log.close()
    with pytest.raises(RuntimeError):
        log.send("t", "k", "v")


def test_consumer_commits(event_log):
    assert event_log.committed("g", "t") is None
    event_log.commit("g", "t", 3)
    event_log.commit("g", "t", 7)
    assert event_log.committed("g", "t") == 7
    assert event_log.committed("other", "t") is None


def test_replay_survives_reopen(tmp_path):
    path = tmp_path / "replay.db"
    log = SQLiteEventLog(path)
    log.append("t", "k", "v0")
    log.append("t", "k", "v1")
    log.close()
    reopened = SQLiteEventLog(path)
    assert [r.value for r in reopened.read("t", 0)] == ["v0", "v1"]
    reopened.close()
