"""Simulated market feed for demo mode and backtesting.

Generates plausible live-looking traffic against a fixed set of demo
markets so the pipeline can run without network access.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from polymarket_insider_scanner.ingestor.models import Market, Trade, make_trade_id, now_millis
from polymarket_insider_scanner.profiler.models import KNOWN_INSIDER_ADDRESS

logger = logging.getLogger(__name__)

DEMO_MARKETS: tuple[Market, ...] = (
    Market(
        id="mock-1",
        question="Venezuelan Presidential Election 2024 Winner?",
        volume=15_420_000,
        liquidity=450_000,
        outcomes=("Maduro", "Gonzalez", "Other"),
        outcome_prices=(0.22, 0.75, 0.03),
        slug="venezuela-election-2024",
        end_date="2024-12-31",
    ),
    Market(
        id="mock-2",
        question="Fed Interest Rate Cut in September?",
        volume=52_000_000,
        liquidity=1_200_000,
        outcomes=("Yes", "No"),
        outcome_prices=(0.65, 0.35),
        slug="fed-rates-sept",
        end_date="2024-09-18",
    ),
    Market(
        id="mock-3",
        question="Bitcoin > $100k by EOY 2024?",
        volume=8_900_000,
        liquidity=150_000,
        outcomes=("Yes", "No"),
        outcome_prices=(0.12, 0.88),
        slug="btc-100k-2024",
        end_date="2024-12-31",
    ),
)

SCENARIO_MARKET = DEMO_MARKETS[0]
SCENARIO_SIZE = 35_000.0
SCENARIO_PRICE = 0.12
SCENARIO_AGE_MS = 4 * 60 * 60 * 1000  # 4 hours before now

HIGH_VOLUME_THRESHOLD = 1_000_000
HIGH_VOLUME_ACTIVITY = 0.3
LOW_VOLUME_ACTIVITY = 0.1
WHALE_PROBABILITY = 0.05
MAX_REPORTING_DELAY_MS = 15_000


def random_wallet(rng: random.Random) -> str:
    """Generate a random 0x-prefixed 40 hex digit address."""
    return "0x" + "".join(rng.choice("0123456789abcdef") for _ in range(40))


def build_backtest_scenario(now_ms: int | None = None) -> Trade:
    """Build the historical "Maduro" accumulation trade.

    A 35,000 USD buy of a 12% outcome by the known insider wallet, placed
    four hours before ``now_ms``. The id embeds the timestamp so repeated
    backtests are not swallowed by the dedup ledger.
    """
    if now_ms is None:
        now_ms = now_millis()
    timestamp = now_ms - SCENARIO_AGE_MS
    tx_hash = "0xbacktestscenariohash123"
    return Trade(
        id=make_trade_id(tx_hash, 0, timestamp),
        market_id=SCENARIO_MARKET.id,
        outcome_index=0,
        outcome_label=SCENARIO_MARKET.label_for(0),
        side="BUY",
        price=SCENARIO_PRICE,
        size=SCENARIO_SIZE,
        timestamp=timestamp,
        maker_address=KNOWN_INSIDER_ADDRESS,
        transaction_hash=tx_hash,
        market_question=SCENARIO_MARKET.question,
    )


class SimulatedTradeSource:
    """Trade source producing synthetic traffic for the demo markets.

    Each tick, every market rolls for activity (higher odds for high-volume
    markets); active markets emit one trade, occasionally whale-sized.
    """

    def __init__(
        self,
        *,
        markets: Sequence[Market] = DEMO_MARKETS,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the simulated source.

        Args:
            markets: Markets to simulate.
            rng: Random generator; pass a seeded one for reproducible runs.
        """
        self._markets = list(markets)
        self._rng = rng or random.Random()

    async def close(self) -> None:
        """Nothing to release."""

    async def list_tracked_markets(self) -> list[Market]:
        """Return the demo markets."""
        return list(self._markets)

    async def list_recent_trades(self, markets: Sequence[Market]) -> list[Trade]:
        """Generate this tick's synthetic trades, newest first."""
        now_ms = now_millis()
        trades = []
        for market in markets:
            chance = (
                HIGH_VOLUME_ACTIVITY if market.volume > HIGH_VOLUME_THRESHOLD
                else LOW_VOLUME_ACTIVITY
            )
            if self._rng.random() < chance:
                trades.append(self._make_trade(market, now_ms))

        trades.sort(key=lambda t: t.timestamp, reverse=True)
        logger.debug("Simulated %d trades across %d markets", len(trades), len(markets))
        return trades

    def _make_trade(self, market: Market, now_ms: int) -> Trade:
        rng = self._rng
        if rng.random() < WHALE_PROBABILITY:
            size = float(rng.randint(5_000, 45_000))
        else:
            size = float(rng.randint(100, 2_100))

        outcome_index = rng.randrange(max(len(market.outcomes), 1))
        price = market.price_for(outcome_index)
        timestamp = now_ms - rng.randint(0, MAX_REPORTING_DELAY_MS)
        tx_hash = "0x" + "".join(rng.choice("0123456789abcdef") for _ in range(64))

        return Trade(
            id=make_trade_id(tx_hash, outcome_index, timestamp),
            market_id=market.id,
            outcome_index=outcome_index,
            outcome_label=market.label_for(outcome_index),
            side="BUY",
            price=price if price is not None else 0.5,
            size=size,
            timestamp=timestamp,
            maker_address=random_wallet(rng),
            transaction_hash=tx_hash,
            market_question=market.question,
        )
