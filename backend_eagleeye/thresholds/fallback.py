"""
Fallback mode: in-memory threshold store used when the persistent table is unavailable.

Enabling seeds a fixed set of synthetic identities
(``property_{i};tenant_0;type_error;interface_api``) with random thresholds and
adds their digests to the membership filter. Enabling is one-way for the life
of the process and idempotent: seeding happens once.
"""

from __future__ import annotations

import random
import threading

from backend_eagleeye.core.hashing import hash_composite_key
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.thresholds.membership import MembershipFilter
from backend_eagleeye.thresholds.models import ThresholdRecord

logger = get_logger(__name__)

DEFAULT_SEED_COUNT = 100
DEFAULT_THRESHOLD_MIN = 40
DEFAULT_THRESHOLD_MAX = 90
SEED_KEY_TEMPLATE = "property_{i};tenant_0;type_error;interface_api"


def synthetic_composite_keys(count: int = DEFAULT_SEED_COUNT) -> list[str]:
    return [SEED_KEY_TEMPLATE.format(i=i) for i in range(1, count + 1)]


class FallbackStore:
    """Degraded in-memory substitute for ThresholdTable reads."""

    def __init__(
        self,
        membership: MembershipFilter,
        *,
        seed_count: int = DEFAULT_SEED_COUNT,
        threshold_min: int = DEFAULT_THRESHOLD_MIN,
        threshold_max: int = DEFAULT_THRESHOLD_MAX,
        rng: random.Random | None = None,
    ) -> None:
        if threshold_min > threshold_max:
            raise ValueError("threshold_min must be <= threshold_max")
        self._membership = membership
        self._seed_count = seed_count
        self._threshold_min = threshold_min
        self._threshold_max = threshold_max
        self._rng = rng or random.Random()
        self._records: dict[str, ThresholdRecord] = {}
        self._lock = threading.Lock()
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def __len__(self) -> int:
        return len(self._records)

    def enable(self, reason: str = "admin") -> bool:
        """Seed synthetic thresholds and switch on. Returns False if already enabled."""
        with self._lock:
            if self._enabled:
                return False
            records: dict[str, ThresholdRecord] = {}
            for i, key in enumerate(synthetic_composite_keys(self._seed_count), start=1):
                digest = hash_composite_key(key)
                threshold = self._rng.randint(self._threshold_min, self._threshold_max)
                records[digest] = ThresholdRecord(digest=digest, threshold=threshold, breach_count=0)
                # Filter before store, same ordering as config ingest
                self._membership.add(digest)
                if i % 20 == 0:
                    logger.debug("fallback_seed_progress", loaded=i, total=self._seed_count, last_threshold=threshold)
            self._records = records
            self._enabled = True
        logger.warning(
            "fallback_mode_enabled",
            reason=reason,
            seeded=len(records),
            threshold_min=self._threshold_min,
            threshold_max=self._threshold_max,
        )
        return True

    def get(self, digest: str) -> ThresholdRecord | None:
        return self._records.get(digest)
