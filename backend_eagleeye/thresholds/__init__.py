"""
Threshold state: membership filter, persistent threshold table, fallback store.

Written only by the config ingest loop (and fallback seeding); read by the
breach classifier.
"""

from backend_eagleeye.thresholds.fallback import FallbackStore
from backend_eagleeye.thresholds.membership import MembershipFilter
from backend_eagleeye.thresholds.models import (
    ThresholdRecord,
    format_threshold_value,
    parse_threshold_value,
)
from backend_eagleeye.thresholds.table import (
    ChangelogBackend,
    SQLiteChangelog,
    ThresholdTable,
)

__all__ = [
    "ChangelogBackend",
    "FallbackStore",
    "MembershipFilter",
    "SQLiteChangelog",
    "ThresholdRecord",
    "ThresholdTable",
    "format_threshold_value",
    "parse_threshold_value",
]
