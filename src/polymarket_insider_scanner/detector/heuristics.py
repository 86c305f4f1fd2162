"""Heuristic suspicion scoring for individual trades.

Each rule contributes a fixed number of points and a human-readable factor
tag when its threshold is crossed. Contributions are independent and
additive; the sum is not clamped here.

Scoring rules:
    size z-score > 3                          +35
    size / liquidity > 1%                     +25
    price < 0.20 and size > 200 USD           +20
    trader is a large holder of the market    +30
    trader is on the insider denylist         +50
    trader wallet younger than 7 days         +15
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from polymarket_insider_scanner.detector.stats import MarketStats, z_score
from polymarket_insider_scanner.ingestor.models import Market, Trade
from polymarket_insider_scanner.profiler.models import KNOWN_INSIDER_ADDRESS, WalletStats

Z_SCORE_THRESHOLD = 3.0
Z_SCORE_POINTS = 35

LIQUIDITY_RATIO_THRESHOLD = 0.01
LIQUIDITY_POINTS = 25

LONGSHOT_PRICE_THRESHOLD = 0.20
LONGSHOT_MIN_SIZE = 200.0
LONGSHOT_POINTS = 20

WHALE_POINTS = 30
INSIDER_POINTS = 50

FRESH_WALLET_MAX_AGE_DAYS = 7
FRESH_WALLET_POINTS = 15

DEFAULT_INSIDER_ADDRESSES = frozenset({KNOWN_INSIDER_ADDRESS.lower()})

FACTOR_WHALE = "Verified whale activity"
FACTOR_INSIDER = "Known insider wallet"
FACTOR_FRESH_WALLET = "Fresh wallet (< 7 days)"


def normalize_addresses(addresses: Iterable[str]) -> frozenset[str]:
    """Lowercase a collection of addresses for case-insensitive lookup."""
    return frozenset(a.strip().lower() for a in addresses if a.strip())


@dataclass(frozen=True)
class HeuristicResult:
    """Outcome of heuristic scoring.

    Attributes:
        base_score: Sum of triggered rule points (unclamped).
        factors: Tags of the triggered rules, in rule order.
        z_score: Size z-score used by the sizing rule.
    """

    base_score: int
    factors: tuple[str, ...]
    z_score: float

    @property
    def factor_count(self) -> int:
        """Number of triggered rules."""
        return len(self.factors)


def score_trade(
    trade: Trade,
    market: Market,
    stats: MarketStats,
    is_whale: bool,
    *,
    insider_addresses: frozenset[str] = DEFAULT_INSIDER_ADDRESSES,
    wallet_stats: WalletStats | None = None,
) -> HeuristicResult:
    """Score a trade against the heuristic rules.

    Args:
        trade: Trade under evaluation.
        market: Market the trade belongs to.
        stats: Market size statistics from before this trade was recorded.
        is_whale: Whether the trader is a large holder of the market.
        insider_addresses: Lowercased denylist of known insider wallets.
        wallet_stats: Trader history, if the wallet oracle was consulted.

    Returns:
        HeuristicResult with the base score and triggered factors.
    """
    score = 0
    factors: list[str] = []

    z = z_score(stats, trade.size)
    if z > Z_SCORE_THRESHOLD:
        score += Z_SCORE_POINTS
        factors.append(f"Unusual sizing (z={z:.1f}, ${trade.size:,.0f})")

    if market.liquidity > 0:
        ratio = trade.size / market.liquidity
        if ratio > LIQUIDITY_RATIO_THRESHOLD:
            score += LIQUIDITY_POINTS
            factors.append(f"Liquidity impact ({ratio * 100:.1f}% of book)")

    if trade.price < LONGSHOT_PRICE_THRESHOLD and trade.size > LONGSHOT_MIN_SIZE:
        score += LONGSHOT_POINTS
        factors.append(f"Speculative accumulation at long odds ({trade.price * 100:.0f}%)")

    if is_whale:
        score += WHALE_POINTS
        factors.append(FACTOR_WHALE)

    if trade.maker_address.lower() in insider_addresses:
        score += INSIDER_POINTS
        factors.append(FACTOR_INSIDER)

    if wallet_stats is not None and wallet_stats.account_age_days < FRESH_WALLET_MAX_AGE_DAYS:
        score += FRESH_WALLET_POINTS
        factors.append(FACTOR_FRESH_WALLET)

    return HeuristicResult(base_score=score, factors=tuple(factors), z_score=z)
