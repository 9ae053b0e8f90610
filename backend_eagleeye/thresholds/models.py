"""
Threshold record model and its wire/storage encoding ``digest:threshold:breachCount``.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_eagleeye.core.exceptions import MalformedThresholdRecord
from backend_eagleeye.core.hashing import is_digest

VALUE_DELIMITER = ":"


@dataclass(frozen=True)
class ThresholdRecord:
    """Configured threshold for one digest. Replaced wholesale on every update."""

    digest: str
    threshold: int
    breach_count: int = 0
    """Last configured breach count (alertTimes); echoed, never incremented here."""

    def to_value(self) -> str:
        return format_threshold_value(self)


def format_threshold_value(record: ThresholdRecord) -> str:
    return f"{record.digest}{VALUE_DELIMITER}{record.threshold}{VALUE_DELIMITER}{record.breach_count}"


def parse_threshold_value(value: str | None) -> ThresholdRecord:
    """Parse ``digest:threshold:breachCount``; raises MalformedThresholdRecord."""
    if not value:
        raise MalformedThresholdRecord("empty threshold value")
    parts = value.split(VALUE_DELIMITER)
    if len(parts) != 3:
        raise MalformedThresholdRecord(f"expected 3 fields, got {len(parts)}")
    digest, threshold_raw, breach_raw = parts
    if not is_digest(digest):
        raise MalformedThresholdRecord(f"invalid digest {digest!r}")
    try:
        threshold = int(threshold_raw)
        breach_count = int(breach_raw)
    except ValueError as e:
        raise MalformedThresholdRecord(f"non-integer field in {value!r}") from e
    return ThresholdRecord(digest=digest, threshold=threshold, breach_count=breach_count)
