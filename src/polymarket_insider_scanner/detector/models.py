"""Data models for the detector module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from polymarket_insider_scanner.ingestor.models import Trade
from polymarket_insider_scanner.profiler.models import WalletStats

# Exclusive lower bounds of each level
CRITICAL_THRESHOLD = 85
HIGH_THRESHOLD = 65
MEDIUM_THRESHOLD = 40


class SuspicionLevel(str, Enum):
    """Severity of a suspicious trade, totally ordered LOW < CRITICAL."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        """Position in the severity order (LOW is 0)."""
        return _LEVEL_ORDER.index(self)

    def at_least(self, other: SuspicionLevel) -> bool:
        """Return True if this level is as severe as ``other`` or more."""
        return self.rank >= other.rank


_LEVEL_ORDER = (
    SuspicionLevel.LOW,
    SuspicionLevel.MEDIUM,
    SuspicionLevel.HIGH,
    SuspicionLevel.CRITICAL,
)


def level_for_score(score: float) -> SuspicionLevel:
    """Map a 0-100 suspicion score to its level."""
    if score > CRITICAL_THRESHOLD:
        return SuspicionLevel.CRITICAL
    if score > HIGH_THRESHOLD:
        return SuspicionLevel.HIGH
    if score > MEDIUM_THRESHOLD:
        return SuspicionLevel.MEDIUM
    return SuspicionLevel.LOW


@dataclass(frozen=True)
class SuspiciousActivity:
    """An alert raised for a single suspicious trade.

    Attributes:
        id: Trade id; the alert ledger keeps at most one alert per id.
        trade: The trade that triggered the alert.
        suspicion_score: Fused score, integer 0-100.
        level: Severity derived from the score.
        reasoning: Short rationale from the analyzer (or its fallback).
        factors: Triggered factor tags, duplicates collapsed.
        wallet_stats: Trader history, when the wallet oracle was consulted.
        base_score: Unclamped heuristic score before fusion.
        analyzer_score: Score contributed by the analyzer.
        used_fallback: True if the analyzer was unavailable.
        detected_at: When the alert was produced.
    """

    id: str
    trade: Trade
    suspicion_score: int
    level: SuspicionLevel
    reasoning: str
    factors: tuple[str, ...]
    wallet_stats: WalletStats | None = None
    base_score: int = 0
    analyzer_score: int = 0
    used_fallback: bool = False
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def market_id(self) -> str:
        """Return the market ID from the trade."""
        return self.trade.market_id

    @property
    def wallet_address(self) -> str:
        """Return the trader address from the trade."""
        return self.trade.maker_address

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "trade": self.trade.to_dict(),
            "suspicion_score": self.suspicion_score,
            "level": self.level.value,
            "reasoning": self.reasoning,
            "factors": list(self.factors),
            "wallet_stats": self.wallet_stats.to_dict() if self.wallet_stats else None,
            "base_score": self.base_score,
            "analyzer_score": self.analyzer_score,
            "used_fallback": self.used_fallback,
            "detected_at": self.detected_at.isoformat(),
        }
