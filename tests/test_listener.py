"""
Tests for the alert listener: positional parsing, malformed records, offset commits, sink.
"""

from __future__ import annotations

import pytest

from backend_eagleeye.alerts.listener import AlertListener, AlertRecord, parse_alert_record
from backend_eagleeye.core.exceptions import MalformedAlertRecord

ALERT_TOPIC = "eagle-eye.alerts"
VALID = "property_1;tenant_0;type_error;interface_api;2ae1fd9eae05bf85;75;50;1"


def test_parse_valid_record():
    alert = parse_alert_record(VALID)
    assert alert == AlertRecord(
        property_id="property_1",
        tenant_id="tenant_0",
        transaction_type="type_error",
        interface_id="interface_api",
        hash="2ae1fd9eae05bf85",
        error_count=75,
        threshold=50,
        alert_times=1,
    )
    assert alert.to_dict()["type"] == "type_error"


@pytest.mark.parametrize(
    "value",
    [
        "property_1;tenant_0;type_error;interface_api;75;50;1",  # 7 fields
        "ALERT: Hash 2ae1fd9eae05bf85 exceeded threshold!",
        "",
        "p;t;x;i;h;seventy-five;50;1",
    ],
)
def test_parse_rejects_malformed(value):
    with pytest.raises(MalformedAlertRecord):
        parse_alert_record(value)


def test_listener_drops_malformed_and_continues(event_log):
    received = []
    event_log.append(ALERT_TOPIC, "2ae1fd9eae05bf85", "too;few;fields")
    event_log.append(ALERT_TOPIC, "2ae1fd9eae05bf85", VALID)
    listener = AlertListener(event_log, topic=ALERT_TOPIC, sink=received.append)

    assert listener.poll_once() == 2
    assert listener.rejected == 1
    assert listener.received == 1
    assert [a.error_count for a in received] == [75]
    assert event_log.committed(listener.group, ALERT_TOPIC) == 1


def test_listener_resumes_from_committed_offset(event_log):
    event_log.append(ALERT_TOPIC, "k", VALID)
    AlertListener(event_log, topic=ALERT_TOPIC).poll_once()
    event_log.append(ALERT_TOPIC, "k", VALID.replace(";75;", ";99;"))

    received = []
    listener = AlertListener(event_log, topic=ALERT_TOPIC, sink=received.append)
    assert listener.poll_once() == 1
    assert [a.error_count for a in received] == [99]
    assert listener.poll_once() == 0


def test_sink_failure_is_contained(event_log):
    def broken_sink(alert):
        raise RuntimeError("smtp down")

    event_log.append(ALERT_TOPIC, "k", VALID)
    listener = AlertListener(event_log, topic=ALERT_TOPIC, sink=broken_sink)
    assert listener.poll_once() == 1
    assert listener.received == 1
