"""
Breach classifier: (digest, error count) -> NoThreshold | BelowThreshold | ThresholdBreached.

1. Membership filter says "definitely not configured" -> NoThreshold (dominant, cheap path).
2. Otherwise look the digest up in the threshold table; if the table is
   unavailable, switch to fallback mode (one-way, logged) and look it up there.
3. No record -> NoThreshold (filter false positive).
4. error_count >= threshold -> schedule an alert (fire-and-forget) and return
   ThresholdBreached. The comparison is inclusive.
5. Otherwise BelowThreshold.

breach_count is echoed from the configured record; the classifier never increments it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import ClassVar, Union

from backend_eagleeye.alerts.emitter import AlertEmitter, AlertEvent
from backend_eagleeye.core.exceptions import StoreUnavailable
from backend_eagleeye.core.hashing import Identity
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.thresholds.fallback import FallbackStore
from backend_eagleeye.thresholds.membership import MembershipFilter
from backend_eagleeye.thresholds.models import ThresholdRecord
from backend_eagleeye.thresholds.table import ThresholdTable

logger = get_logger(__name__)

MODE_PERSISTENT = "persistent"
MODE_FALLBACK = "fallback"


@dataclass(frozen=True)
class NoThreshold:
    reason: ClassVar[str] = "no_threshold"


@dataclass(frozen=True)
class BelowThreshold:
    threshold: int
    reason: ClassVar[str] = "below_threshold"


@dataclass(frozen=True)
class ThresholdBreached:
    threshold: int
    breach_count: int
    reason: ClassVar[str] = "threshold_breached"


Classification = Union[NoThreshold, BelowThreshold, ThresholdBreached]

NO_THRESHOLD = NoThreshold()


class BreachClassifier:
    """Read path over membership filter + threshold table, with fallback and alert emission."""

    def __init__(
        self,
        membership: MembershipFilter,
        table: ThresholdTable,
        fallback: FallbackStore,
        emitter: AlertEmitter,
    ) -> None:
        self._membership = membership
        self._table = table
        self._fallback = fallback
        self._emitter = emitter
        self._transition_lock = threading.Lock()
        self.fallback_transitions = 0

    @property
    def mode(self) -> str:
        return MODE_FALLBACK if self._fallback.enabled else MODE_PERSISTENT

    def enable_fallback(self, reason: str) -> bool:
        """
        Switch reads to the fallback store (seeding it once).
        Returns True only for the call that performed the transition.
        """
        with self._transition_lock:
            if self._fallback.enabled:
                return False
            seeded = self._fallback.enable(reason=reason)
            if seeded:
                self.fallback_transitions += 1
        logger.warning(
            "fallback_mode_engaged",
            reason=reason,
            table_state=self._table.state,
            seeded=len(self._fallback),
        )
        return seeded

    def _lookup(self, digest: str) -> ThresholdRecord | None:
        if self._fallback.enabled:
            return self._fallback.get(digest)
        try:
            return self._table.get(digest)
        except StoreUnavailable as e:
            self.enable_fallback(reason=str(e))
            return self._fallback.get(digest)

    def classify(
        self,
        digest: str,
        error_count: int,
        identity: Identity | None = None,
    ) -> Classification:
        if not self._membership.might_contain(digest):
            return NO_THRESHOLD

        record = self._lookup(digest)
        if record is None:
            return NO_THRESHOLD

        if error_count >= record.threshold:
            logger.info(
                "alert_triggered",
                hash=digest,
                error_count=error_count,
                threshold=record.threshold,
                alert_times=record.breach_count,
            )
            self._emitter.emit(
                AlertEvent(
                    digest=digest,
                    error_count=error_count,
                    threshold=record.threshold,
                    breach_count=record.breach_count,
                    identity=identity,
                )
            )
            return ThresholdBreached(threshold=record.threshold, breach_count=record.breach_count)
        return BelowThreshold(threshold=record.threshold)
