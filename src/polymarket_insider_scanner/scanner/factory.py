"""Wiring of scanner components from settings.

The feed mode is decided here, once. Downstream components receive
concrete collaborators and never inspect the mode themselves.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis

from polymarket_insider_scanner.alerter.ledger import AlertLedger
from polymarket_insider_scanner.config import Settings
from polymarket_insider_scanner.detector.dedup import (
    DedupLedger,
    InMemoryDedupLedger,
    RedisDedupLedger,
)
from polymarket_insider_scanner.detector.evaluator import TradeEvaluator
from polymarket_insider_scanner.detector.stats import RunningStatsTracker
from polymarket_insider_scanner.ingestor.simulation import SimulatedTradeSource
from polymarket_insider_scanner.ingestor.source import PolymarketTradeSource, TradeSource
from polymarket_insider_scanner.profiler.analyzer import (
    GeminiSuspicionAnalyzer,
    SuspicionAnalyzer,
)
from polymarket_insider_scanner.profiler.oracle import (
    DataApiWalletOracle,
    SimulatedWalletOracle,
    WalletOracle,
)
from polymarket_insider_scanner.scanner.scheduler import ScanScheduler

logger = logging.getLogger(__name__)


def build_dedup_ledger(settings: Settings) -> DedupLedger:
    """Use Redis when REDIS_URL is set, otherwise a process-local ledger."""
    if settings.redis.url is None:
        return InMemoryDedupLedger()
    redis = Redis.from_url(settings.redis.url)
    return RedisDedupLedger(redis, ttl_seconds=settings.redis.dedup_ttl_seconds)


def build_analyzer(settings: Settings) -> SuspicionAnalyzer | None:
    """Return the Gemini analyzer, or None when no API key is configured."""
    analyzer_settings = settings.analyzer
    if analyzer_settings.api_key is None or not analyzer_settings.enabled:
        logger.info("No analyzer API key set, using heuristic fallback analysis")
        return None
    return GeminiSuspicionAnalyzer(
        analyzer_settings.api_key.get_secret_value(),
        model=analyzer_settings.model,
        base_url=analyzer_settings.base_url,
        timeout=analyzer_settings.timeout_seconds,
    )


def build_feed(settings: Settings, simulation: bool) -> tuple[TradeSource, WalletOracle]:
    """Return the trade source and wallet oracle for the selected mode."""
    if simulation:
        return SimulatedTradeSource(), SimulatedWalletOracle()

    poly = settings.polymarket
    source = PolymarketTradeSource(
        gamma_url=poly.gamma_url,
        data_url=poly.data_url,
        market_limit=poly.market_limit,
        markets_per_tick=poly.markets_per_tick,
        trades_per_market=poly.trades_per_market,
        freshness_window_seconds=poly.freshness_window_seconds,
        timeout=poly.timeout_seconds,
    )
    oracle = DataApiWalletOracle(data_url=poly.data_url, timeout=poly.timeout_seconds)
    return source, oracle


def build_scanner(settings: Settings, *, simulation: bool | None = None) -> ScanScheduler:
    """Assemble a scheduler and its collaborators.

    Args:
        settings: Application settings.
        simulation: Override of the configured mode.

    Returns:
        A ready-to-start ScanScheduler.
    """
    scanner_settings = settings.scanner
    if simulation is None:
        simulation = scanner_settings.simulation

    source, oracle = build_feed(settings, simulation)
    evaluator = TradeEvaluator(
        stats=RunningStatsTracker(),
        dedup=build_dedup_ledger(settings),
        oracle=oracle,
        analyzer=build_analyzer(settings),
        concurrency=scanner_settings.concurrency,
        qualification_threshold=scanner_settings.qualification_threshold,
        insider_addresses=scanner_settings.insider_addresses,
    )

    logger.info(
        "Scanner wired: mode=%s, concurrency=%d, dedup=%s",
        "simulation" if simulation else "live",
        scanner_settings.concurrency,
        type(evaluator.dedup).__name__,
    )

    return ScanScheduler(
        source=source,
        evaluator=evaluator,
        ledger=AlertLedger(capacity=scanner_settings.alert_capacity),
        poll_interval_seconds=scanner_settings.poll_interval_seconds,
        min_trade_size=scanner_settings.min_trade_size,
        recency_window_seconds=scanner_settings.recency_window_seconds,
        market_refresh_seconds=scanner_settings.market_refresh_seconds,
    )
