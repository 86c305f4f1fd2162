"""Anomaly detection layer - statistics, scoring and deduplication.

The bounded evaluator that drives these pieces lives in
``detector.evaluator`` and is imported directly.
"""

from polymarket_insider_scanner.detector.dedup import (
    DedupLedger,
    InMemoryDedupLedger,
    RedisDedupLedger,
)
from polymarket_insider_scanner.detector.fusion import fuse, merge_factors
from polymarket_insider_scanner.detector.heuristics import HeuristicResult, score_trade
from polymarket_insider_scanner.detector.models import (
    SuspicionLevel,
    SuspiciousActivity,
    level_for_score,
)
from polymarket_insider_scanner.detector.stats import (
    MarketStats,
    RunningStatsTracker,
    z_score,
)

__all__ = [
    "DedupLedger",
    "HeuristicResult",
    "InMemoryDedupLedger",
    "MarketStats",
    "RedisDedupLedger",
    "RunningStatsTracker",
    "SuspicionLevel",
    "SuspiciousActivity",
    "fuse",
    "level_for_score",
    "merge_factors",
    "score_trade",
    "z_score",
]
