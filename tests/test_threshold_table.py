"""
Tests for the threshold table: put/get, idempotence, changelog recovery, checkpoints, unavailability.
"""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

import pytest

from backend_eagleeye.core.exceptions import MalformedThresholdRecord, StoreUnavailable
from backend_eagleeye.thresholds.membership import MembershipFilter
from backend_eagleeye.thresholds.models import (
    ThresholdRecord,
    format_threshold_value,
    parse_threshold_value,
)
from backend_eagleeye.thresholds.table import (
    STATE_READY,
    STATE_RECOVERING,
    STATE_UNAVAILABLE,
    SQLiteChangelog,
    ThresholdTable,
)

D1 = "2ae1fd9eae05bf85"
D2 = "0123456789abcdef"


def _reopen(path) -> ThresholdTable:
    t = ThresholdTable(SQLiteChangelog(path))
    t.recover()
    return t


# --- Record encoding ---


def test_threshold_value_format_and_parse():
    rec = ThresholdRecord(D1, 50, 3)
    assert format_threshold_value(rec) == f"{D1}:50:3"
    assert parse_threshold_value(f"{D1}:50:3") == rec


@pytest.mark.parametrize(
    "value",
    ["", None, f"{D1}:50", f"{D1}:50:3:9", f"{D1}:abc:0", ":50:0", "not-a-digest:50:0", f"{D1.upper()}:50:0"],
)
def test_parse_threshold_value_malformed(value):
    with pytest.raises(MalformedThresholdRecord):
        parse_threshold_value(value)


# --- Table ---


def test_get_before_recover_is_unavailable(tmp_path):
    t = ThresholdTable(SQLiteChangelog(tmp_path / "t.db"))
    assert t.state == STATE_RECOVERING
    with pytest.raises(StoreUnavailable):
        t.get(D1)


def test_put_then_get_returns_record(table):
    rec = ThresholdRecord(D1, 50, 0)
    table.put(D1, rec, source_offset=0)
    assert table.get(D1) == rec
    assert table.get(D2) is None
    assert table.last_applied_offset == 0
    assert len(table) == 1


def test_put_replaces_whole_record(table):
    table.put(D1, ThresholdRecord(D1, 50, 0), source_offset=0)
    table.put(D1, ThresholdRecord(D1, 70, 4), source_offset=1)
    assert table.get(D1) == ThresholdRecord(D1, 70, 4)


def test_reput_identical_record_is_idempotent(table):
    rec = ThresholdRecord(D1, 50, 0)
    table.put(D1, rec, source_offset=0)
    before = table.get(D1)
    table.put(D1, rec, source_offset=1)
    assert table.get(D1) == before
    assert len(table) == 1


def test_recovery_replays_changelog_in_order(tmp_path):
    path = tmp_path / "t.db"
    t = _reopen(path)
    t.put(D1, ThresholdRecord(D1, 50, 0), source_offset=0)
    t.put(D2, ThresholdRecord(D2, 10, 1), source_offset=1)
    t.put(D1, ThresholdRecord(D1, 80, 2), source_offset=2)
    t.drop(D2, source_offset=3)

    membership = MembershipFilter(capacity=100)
    recovered = ThresholdTable(SQLiteChangelog(path))
    count = recovered.recover(on_record=membership.add)
    assert count == 1
    assert recovered.state == STATE_READY
    assert recovered.get(D1) == ThresholdRecord(D1, 80, 2)
    assert recovered.get(D2) is None
    assert recovered.last_applied_offset == 3
    assert membership.might_contain(D1)


def test_checkpoint_compacts_and_recovers(tmp_path):
    path = tmp_path / "t.db"
    t = ThresholdTable(SQLiteChangelog(path), checkpoint_every=2)
    t.recover()
    t.put(D1, ThresholdRecord(D1, 50, 0), source_offset=0)
    t.put(D2, ThresholdRecord(D2, 20, 0), source_offset=1)  # triggers checkpoint
    t.put(D1, ThresholdRecord(D1, 60, 1), source_offset=2)

    with sqlite3.connect(str(path)) as conn:
        (tail,) = conn.execute("SELECT COUNT(*) FROM threshold_changelog").fetchone()
        (snap,) = conn.execute("SELECT COUNT(*) FROM threshold_snapshot").fetchone()
    assert tail == 1
    assert snap == 2

    recovered = _reopen(path)
    assert recovered.get(D1) == ThresholdRecord(D1, 60, 1)
    assert recovered.get(D2) == ThresholdRecord(D2, 20, 0)
    assert recovered.last_applied_offset == 2


def test_recovery_failure_marks_unavailable():
    backend = MagicMock()
    backend.ensure_schema.side_effect = sqlite3.OperationalError("unable to open database file")
    t = ThresholdTable(backend)
    with pytest.raises(StoreUnavailable):
        t.recover()
    assert t.state == STATE_UNAVAILABLE
    with pytest.raises(StoreUnavailable):
        t.get(D1)


def test_put_append_failure_raises_store_unavailable(table, monkeypatch):
    def boom(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(table._backend, "append", boom)
    with pytest.raises(StoreUnavailable):
        table.put(D1, ThresholdRecord(D1, 50, 0), source_offset=0)
    assert table.get(D1) is None
