"""
Observation intake boundary: composite key string + error count string -> Observation.

Parse failures raise MalformedObservation here, before the classifier is
involved. The error count must be a signed decimal integer that fits in 64
bits; sign is not validated at this layer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from backend_eagleeye.core.exceptions import MalformedObservation
from backend_eagleeye.core.hashing import Identity, hash_composite_key, parse_composite_key

ERROR_COUNT_PATTERN = re.compile(r"[+-]?[0-9]+")
ERROR_COUNT_MIN = -(2**63)
ERROR_COUNT_MAX = 2**63 - 1


@dataclass(frozen=True)
class Observation:
    """One classification request; never stored."""

    key: str
    digest: str
    error_count: int
    identity: Identity | None = None


def parse_error_count(raw: Any) -> int:
    if isinstance(raw, bool) or raw is None:
        raise MalformedObservation(f"invalid errorCount: {raw!r}")
    if isinstance(raw, int):
        count = raw
    elif isinstance(raw, str) and ERROR_COUNT_PATTERN.fullmatch(raw):
        count = int(raw)
    else:
        raise MalformedObservation(f"invalid errorCount: {raw!r}")
    if not ERROR_COUNT_MIN <= count <= ERROR_COUNT_MAX:
        raise MalformedObservation(f"errorCount out of range: {raw!r}")
    return count


def parse_observation(key: Any, error_count: Any) -> Observation:
    if key is None:
        raise MalformedObservation("key is required")
    if not isinstance(key, str):
        raise MalformedObservation(f"key must be a string, got {type(key).__name__}")
    count = parse_error_count(error_count)
    return Observation(
        key=key,
        digest=hash_composite_key(key),
        error_count=count,
        identity=parse_composite_key(key),
    )
