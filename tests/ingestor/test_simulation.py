"""Tests for the simulated market feed."""

import random

import pytest

from polymarket_insider_scanner.ingestor.models import now_millis
from polymarket_insider_scanner.ingestor.simulation import (
    DEMO_MARKETS,
    MAX_REPORTING_DELAY_MS,
    SCENARIO_AGE_MS,
    SCENARIO_MARKET,
    SimulatedTradeSource,
    build_backtest_scenario,
    random_wallet,
)
from polymarket_insider_scanner.profiler.models import KNOWN_INSIDER_ADDRESS


class TestBacktestScenario:
    """Tests for the historical scenario trade."""

    def test_scenario_shape(self) -> None:
        trade = build_backtest_scenario(now_ms=10_000_000_000)

        assert trade.market_id == SCENARIO_MARKET.id
        assert trade.size == 35_000.0
        assert trade.price == 0.12
        assert trade.side == "BUY"
        assert trade.outcome_label == "Maduro"
        assert trade.maker_address == KNOWN_INSIDER_ADDRESS
        assert trade.timestamp == 10_000_000_000 - SCENARIO_AGE_MS

    def test_id_embeds_timestamp(self) -> None:
        """Test repeated backtests produce distinct trade ids."""
        first = build_backtest_scenario(now_ms=1_000_000_000)
        second = build_backtest_scenario(now_ms=1_000_000_001)

        assert first.id != second.id


class TestSimulatedTradeSource:
    """Tests for SimulatedTradeSource."""

    @pytest.mark.asyncio
    async def test_markets(self) -> None:
        source = SimulatedTradeSource()

        assert await source.list_tracked_markets() == list(DEMO_MARKETS)

    @pytest.mark.asyncio
    async def test_trades_are_fresh_and_valid(self) -> None:
        """Test generated trades are recent, sorted and reference real markets."""
        source = SimulatedTradeSource(rng=random.Random(7))
        ids = {m.id for m in DEMO_MARKETS}

        trades = []
        for _ in range(50):
            trades.extend(await source.list_recent_trades(DEMO_MARKETS))

        assert trades
        now = now_millis()
        for trade in trades:
            assert trade.market_id in ids
            assert 0 <= now - trade.timestamp <= MAX_REPORTING_DELAY_MS + 5_000
            assert 0.0 <= trade.price <= 1.0
            assert 100 <= trade.size <= 45_000
            assert trade.maker_address.startswith("0x")
            assert len(trade.maker_address) == 42

    @pytest.mark.asyncio
    async def test_seeded_runs_are_reproducible(self) -> None:
        first = SimulatedTradeSource(rng=random.Random(42))
        second = SimulatedTradeSource(rng=random.Random(42))

        a = [t.size for _ in range(20) for t in await first.list_recent_trades(DEMO_MARKETS)]
        b = [t.size for _ in range(20) for t in await second.list_recent_trades(DEMO_MARKETS)]

        assert a == b

    def test_random_wallet(self) -> None:
        wallet = random_wallet(random.Random(1))

        assert wallet.startswith("0x")
        assert len(wallet) == 42
        int(wallet, 16)
