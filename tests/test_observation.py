"""
Tests for observation intake parsing: decimal 64-bit error counts, string keys.
"""

from __future__ import annotations

import pytest

from backend_eagleeye.alerts.observation import parse_error_count, parse_observation
from backend_eagleeye.core.exceptions import MalformedObservation
from backend_eagleeye.core.hashing import hash_composite_key

KEY = "property_1;tenant_0;type_error;interface_api"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("75", 75),
        ("+75", 75),
        ("-3", -3),
        ("0", 0),
        (42, 42),
        ("9223372036854775807", 2**63 - 1),
        ("-9223372036854775808", -(2**63)),
    ],
)
def test_parse_error_count_accepts_decimal_longs(raw, expected):
    assert parse_error_count(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [None, True, False, 75.0, "", " 75", "75 ", "1_000", "0x10", "7e2", "seventy", "9223372036854775808", 2**63, [1]],
)
def test_parse_error_count_rejects(raw):
    with pytest.raises(MalformedObservation):
        parse_error_count(raw)


def test_parse_observation_hashes_key():
    obs = parse_observation(KEY, "10")
    assert obs.digest == hash_composite_key(KEY)
    assert obs.identity is not None and obs.identity.tenant_id == "tenant_0"


@pytest.mark.parametrize("key", [None, 123, ["a"]])
def test_parse_observation_rejects_non_string_key(key):
    with pytest.raises(MalformedObservation):
        parse_observation(key, "10")
