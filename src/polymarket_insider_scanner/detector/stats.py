"""Per-market running statistics of trade sizes.

Uses Welford's online algorithm so each market costs three numbers of
state no matter how many trades it sees. The estimator is cumulative: old
samples are never forgotten.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass

from polymarket_insider_scanner.ingestor.models import now_millis

logger = logging.getLogger(__name__)

# Cold-start reference used until a market has enough samples
MIN_SAMPLES_FOR_ESTIMATE = 5
REFERENCE_MEAN_SIZE = 500.0
REFERENCE_STDDEV = 1000.0


@dataclass(frozen=True)
class MarketStats:
    """Snapshot of a market's trade-size distribution.

    Attributes:
        count: Number of trades observed.
        mean_size: Running mean trade size in USD.
        sum_sq_dev: Welford M2 accumulator (sum of squared deviations).
        last_update: Epoch millis of the last update, 0 if never updated.
    """

    count: int = 0
    mean_size: float = 0.0
    sum_sq_dev: float = 0.0
    last_update: int = 0

    @property
    def variance(self) -> float:
        """Population variance of the observed sizes."""
        if self.count == 0:
            return 0.0
        return self.sum_sq_dev / self.count

    @property
    def stddev(self) -> float:
        """Population standard deviation of the observed sizes."""
        return math.sqrt(self.variance)

    def updated(self, size: float, timestamp: int) -> MarketStats:
        """Return the snapshot after observing one more trade of ``size``."""
        count = self.count + 1
        delta = size - self.mean_size
        mean = self.mean_size + delta / count
        m2 = self.sum_sq_dev + delta * (size - mean)
        return MarketStats(count=count, mean_size=mean, sum_sq_dev=m2, last_update=timestamp)


def z_score(stats: MarketStats, size: float) -> float:
    """Standard deviations between ``size`` and the market's mean.

    ``stats`` should be the snapshot taken before ``size`` was recorded.
    Sparse markets (fewer than five samples) and degenerate ones (zero
    spread) are measured against a fixed reference distribution.
    """
    if stats.count < MIN_SAMPLES_FOR_ESTIMATE:
        return (size - REFERENCE_MEAN_SIZE) / REFERENCE_STDDEV

    stddev = stats.stddev
    if stddev == 0:
        stddev = REFERENCE_STDDEV
    return (size - stats.mean_size) / stddev


class RunningStatsTracker:
    """Owns the per-market statistics map.

    Updates for one market are serialized by a per-market lock; updates for
    different markets proceed independently.

    Example:
        ```python
        tracker = RunningStatsTracker()
        before, after = tracker.observe("0xabc...", 1250.0)
        z = z_score(before, 1250.0)
        ```
    """

    def __init__(self) -> None:
        """Initialize an empty tracker."""
        self._stats: dict[str, MarketStats] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._stats)

    def _lock_for(self, market_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(market_id)
            if lock is None:
                lock = self._locks[market_id] = threading.Lock()
            return lock

    def observe(
        self,
        market_id: str,
        size: float,
        timestamp: int | None = None,
    ) -> tuple[MarketStats, MarketStats]:
        """Record a trade size and return the snapshots around the update.

        Args:
            market_id: Market the trade belongs to.
            size: Trade size in USD.
            timestamp: Update time in epoch millis (defaults to now).

        Returns:
            Tuple of (pre-update snapshot, post-update snapshot).
        """
        if timestamp is None:
            timestamp = now_millis()
        with self._lock_for(market_id):
            before = self._stats.get(market_id, MarketStats())
            after = before.updated(size, timestamp)
            self._stats[market_id] = after
        return before, after

    def update(self, market_id: str, size: float, timestamp: int | None = None) -> MarketStats:
        """Record a trade size and return the post-update snapshot."""
        return self.observe(market_id, size, timestamp)[1]

    def get(self, market_id: str) -> MarketStats:
        """Return the current snapshot (empty stats for unseen markets)."""
        return self._stats.get(market_id, MarketStats())

    def reset(self) -> None:
        """Forget all markets."""
        with self._registry_lock:
            self._stats.clear()
            self._locks.clear()
        logger.info("Market statistics reset")
