"""Tests for heuristic trade scoring."""

import pytest

from polymarket_insider_scanner.detector.heuristics import (
    FACTOR_FRESH_WALLET,
    FACTOR_INSIDER,
    FACTOR_WHALE,
    INSIDER_POINTS,
    LIQUIDITY_POINTS,
    LONGSHOT_POINTS,
    WHALE_POINTS,
    Z_SCORE_POINTS,
    normalize_addresses,
    score_trade,
)
from polymarket_insider_scanner.detector.stats import MarketStats
from polymarket_insider_scanner.ingestor.models import Market, Trade
from polymarket_insider_scanner.ingestor.simulation import SCENARIO_MARKET, build_backtest_scenario
from polymarket_insider_scanner.profiler.models import KNOWN_INSIDER_ADDRESS, WalletStats

WALLET = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"


@pytest.fixture
def market() -> Market:
    """A deep market where ordinary trades move nothing."""
    return Market(
        id="m1",
        question="Will it rain tomorrow?",
        volume=5_000_000,
        liquidity=1_000_000,
        outcomes=("Yes", "No"),
        outcome_prices=(0.5, 0.5),
    )


@pytest.fixture
def warm_stats() -> MarketStats:
    """Stats for a market with a mean of 500 and some spread."""
    stats = MarketStats()
    for size in [300.0, 400.0, 500.0, 600.0, 700.0]:
        stats = stats.updated(size, 0)
    return stats


def make_trade(size: float, price: float = 0.5, wallet: str = WALLET) -> Trade:
    return Trade(
        id=f"tx-0-{int(size)}",
        market_id="m1",
        outcome_index=0,
        outcome_label="Yes",
        side="BUY",
        price=price,
        size=size,
        timestamp=1_700_000_000_000,
        maker_address=wallet,
        transaction_hash="tx",
    )


class TestIndividualRules:
    """Tests for each heuristic rule in isolation."""

    def test_ordinary_trade_scores_zero(self, market: Market, warm_stats: MarketStats) -> None:
        """Test a typical trade triggers nothing."""
        result = score_trade(make_trade(500.0), market, warm_stats, False)
        assert result.base_score == 0
        assert result.factors == ()
        assert result.factor_count == 0

    def test_unusual_sizing(self, market: Market, warm_stats: MarketStats) -> None:
        """Test the z-score rule."""
        result = score_trade(make_trade(2000.0), market, warm_stats, False)
        assert result.base_score == Z_SCORE_POINTS
        assert result.factors[0].startswith("Unusual sizing (z=")
        assert result.z_score > 3

    def test_liquidity_impact(self, warm_stats: MarketStats) -> None:
        """Test the liquidity-ratio rule."""
        thin = Market(id="m1", question="q", volume=1, liquidity=10_000)
        result = score_trade(make_trade(600.0), thin, warm_stats, False)
        assert result.base_score == LIQUIDITY_POINTS
        assert result.factors == ("Liquidity impact (6.0% of book)",)

    def test_zero_liquidity_skips_ratio(self, warm_stats: MarketStats) -> None:
        """Test markets without liquidity do not trigger the ratio rule."""
        empty = Market(id="m1", question="q", volume=1, liquidity=0)
        result = score_trade(make_trade(600.0), empty, warm_stats, False)
        assert result.base_score == 0

    def test_long_odds(self, market: Market, warm_stats: MarketStats) -> None:
        """Test the long-odds accumulation rule."""
        result = score_trade(make_trade(600.0, price=0.15), market, warm_stats, False)
        assert result.base_score == LONGSHOT_POINTS
        assert result.factors == ("Speculative accumulation at long odds (15%)",)

    def test_long_odds_needs_size(self, market: Market, warm_stats: MarketStats) -> None:
        """Test dust trades at long odds are ignored."""
        result = score_trade(make_trade(200.0, price=0.05), market, warm_stats, False)
        assert result.base_score == 0

    def test_whale(self, market: Market, warm_stats: MarketStats) -> None:
        """Test the whale rule."""
        result = score_trade(make_trade(500.0), market, warm_stats, True)
        assert result.base_score == WHALE_POINTS
        assert result.factors == (FACTOR_WHALE,)

    def test_insider_is_case_insensitive(self, market: Market, warm_stats: MarketStats) -> None:
        """Test the denylist match ignores address case."""
        trade = make_trade(500.0, wallet=KNOWN_INSIDER_ADDRESS.upper().replace("0X", "0x"))
        result = score_trade(trade, market, warm_stats, False)
        assert result.base_score == INSIDER_POINTS
        assert result.factors == (FACTOR_INSIDER,)

    def test_custom_denylist(self, market: Market, warm_stats: MarketStats) -> None:
        """Test an injected denylist replaces the default."""
        denylist = normalize_addresses([WALLET.upper()])
        result = score_trade(
            make_trade(500.0), market, warm_stats, False, insider_addresses=denylist
        )
        assert result.factors == (FACTOR_INSIDER,)

        insider = make_trade(500.0, wallet=KNOWN_INSIDER_ADDRESS)
        result = score_trade(insider, market, warm_stats, False, insider_addresses=denylist)
        assert result.base_score == 0

    def test_fresh_wallet(self, market: Market, warm_stats: MarketStats) -> None:
        """Test wallets younger than a week add points."""
        fresh = WalletStats(total_trades=2, win_rate=1.0, account_age_days=3)
        old = WalletStats(total_trades=200, win_rate=0.5, account_age_days=300)

        result = score_trade(make_trade(500.0), market, warm_stats, False, wallet_stats=fresh)
        assert result.factors == (FACTOR_FRESH_WALLET,)

        result = score_trade(make_trade(500.0), market, warm_stats, False, wallet_stats=old)
        assert result.base_score == 0


class TestBacktestScenario:
    """Tests for the historical insider scenario."""

    def test_all_rules_trigger(self) -> None:
        """Test the scenario trade trips every rule on a cold market."""
        trade = build_backtest_scenario()
        result = score_trade(trade, SCENARIO_MARKET, MarketStats(), True)

        assert result.base_score == (
            Z_SCORE_POINTS + LIQUIDITY_POINTS + LONGSHOT_POINTS + WHALE_POINTS + INSIDER_POINTS
        )
        assert result.base_score >= 100
        assert result.factor_count == 5
        assert result.factors[1] == "Liquidity impact (7.8% of book)"
        assert result.factors[2] == "Speculative accumulation at long odds (12%)"

    def test_score_is_unclamped(self) -> None:
        """Test contributions are summed without a cap."""
        fresh = WalletStats(total_trades=1, win_rate=1.0, account_age_days=0.5)
        result = score_trade(
            build_backtest_scenario(), SCENARIO_MARKET, MarketStats(), True, wallet_stats=fresh
        )
        assert result.base_score == 175
