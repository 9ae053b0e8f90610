"""
Membership filter: Bloom filter over digests known to have a threshold.

``might_contain`` never returns False for an added digest; it may return True
for a digest that was never added, at roughly ``false_positive_rate`` once
``capacity`` digests have been added. Grow-only: there is no delete, and
exceeding capacity degrades the false-positive rate until the filter is
rebuilt with ``from_digests``.
"""

from __future__ import annotations

import hashlib
import math
import threading
from typing import Iterable

from backend_eagleeye.eagleeye_logging import get_logger

logger = get_logger(__name__)

EXPECTED_CAPACITY = 60_000
FALSE_POSITIVE_RATE = 0.01
_MASK_64 = (1 << 64) - 1


def optimal_bit_size(capacity: int, fp_rate: float) -> int:
    return int(math.ceil(-capacity * math.log(fp_rate) / (math.log(2) ** 2)))


def optimal_hash_count(bit_size: int, capacity: int) -> int:
    return max(1, int(round(bit_size / capacity * math.log(2))))


class MembershipFilter:
    """Bloom filter sized from expected capacity and false-positive target."""

    def __init__(
        self,
        capacity: int = EXPECTED_CAPACITY,
        false_positive_rate: float = FALSE_POSITIVE_RATE,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if not 0 < false_positive_rate < 1:
            raise ValueError("false_positive_rate must be between 0 and 1")
        self.capacity = capacity
        self.false_positive_rate = false_positive_rate
        self.bit_size = optimal_bit_size(capacity, false_positive_rate)
        self.hash_count = optimal_hash_count(self.bit_size, capacity)
        self._bits = bytearray((self.bit_size + 7) // 8)
        self._count = 0
        self._lock = threading.Lock()
        logger.info(
            "membership_filter_initialized",
            capacity=capacity,
            false_positive_rate=false_positive_rate,
            bit_size=self.bit_size,
            hash_count=self.hash_count,
        )

    @classmethod
    def from_digests(
        cls,
        digests: Iterable[str],
        capacity: int = EXPECTED_CAPACITY,
        false_positive_rate: float = FALSE_POSITIVE_RATE,
    ) -> "MembershipFilter":
        """Build a fresh filter (e.g. resized to current cardinality) from existing digests."""
        bloom = cls(capacity, false_positive_rate)
        for digest in digests:
            bloom.add(digest)
        return bloom

    def _positions(self, item: str) -> list[int]:
        # Double hashing (Kirsch–Mitzenmacher) over one 128-bit BLAKE2b digest
        h = hashlib.blake2b(item.encode("utf-8"), digest_size=16).digest()
        h1 = int.from_bytes(h[:8], "big")
        h2 = int.from_bytes(h[8:], "big") | 1
        return [((h1 + i * h2) & _MASK_64) % self.bit_size for i in range(self.hash_count)]

    def add(self, digest: str) -> None:
        positions = self._positions(digest)
        with self._lock:
            for pos in positions:
                self._bits[pos >> 3] |= 1 << (pos & 7)
            self._count += 1

    def might_contain(self, digest: str) -> bool:
        bits = self._bits
        for pos in self._positions(digest):
            if not bits[pos >> 3] & (1 << (pos & 7)):
                return False
        return True

    __contains__ = might_contain

    @property
    def count(self) -> int:
        """Number of add() calls, repeats included (upper bound on cardinality)."""
        return self._count

    @property
    def over_capacity(self) -> bool:
        return self._count > self.capacity
