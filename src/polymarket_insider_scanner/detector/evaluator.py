"""Bounded-concurrency evaluation of candidate trades.

This module provides the TradeEvaluator that runs each candidate through
the scoring pipeline:

    dedup gate -> stats update -> heuristic score
        -> (qualifying only) wallet oracle -> re-score -> analyzer -> fusion

At most ``concurrency`` candidates are in flight at a time. A failing
candidate is logged and dropped without affecting the rest of the batch.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Mapping, Sequence

from polymarket_insider_scanner.detector.dedup import DedupLedger, InMemoryDedupLedger
from polymarket_insider_scanner.detector.fusion import fuse, merge_factors
from polymarket_insider_scanner.detector.heuristics import (
    DEFAULT_INSIDER_ADDRESSES,
    HeuristicResult,
    score_trade,
)
from polymarket_insider_scanner.detector.models import SuspicionLevel, SuspiciousActivity
from polymarket_insider_scanner.detector.stats import MarketStats, RunningStatsTracker
from polymarket_insider_scanner.ingestor.models import Market, Trade
from polymarket_insider_scanner.metrics import (
    ALERTS_EMITTED,
    EVALUATION_FAILURES,
    TRADES_DEDUPLICATED,
    TRADES_EVALUATED,
)
from polymarket_insider_scanner.profiler.analyzer import SuspicionAnalyzer, analyze_with_fallback
from polymarket_insider_scanner.profiler.models import WalletStats
from polymarket_insider_scanner.profiler.oracle import WalletOracle, is_whale

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CONCURRENCY = 3
DEFAULT_QUALIFICATION_THRESHOLD = 20
DEFAULT_MIN_ALERT_LEVEL = SuspicionLevel.MEDIUM


class TradeEvaluator:
    """Scores candidate trades with a fixed bound on in-flight evaluations.

    The statistics tracker and dedup ledger are injected so several
    evaluators (or tests) can share or isolate state explicitly.

    Example:
        ```python
        evaluator = TradeEvaluator(
            stats=RunningStatsTracker(),
            dedup=InMemoryDedupLedger(),
            oracle=DataApiWalletOracle(),
            analyzer=GeminiSuspicionAnalyzer(api_key),
            concurrency=3,
        )
        alerts = await evaluator.evaluate(candidates, markets_by_id)
        ```
    """

    def __init__(
        self,
        *,
        stats: RunningStatsTracker | None = None,
        dedup: DedupLedger | None = None,
        oracle: WalletOracle | None = None,
        analyzer: SuspicionAnalyzer | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        qualification_threshold: int = DEFAULT_QUALIFICATION_THRESHOLD,
        insider_addresses: frozenset[str] = DEFAULT_INSIDER_ADDRESSES,
        min_alert_level: SuspicionLevel = DEFAULT_MIN_ALERT_LEVEL,
    ) -> None:
        """Initialize the evaluator.

        Args:
            stats: Per-market statistics store.
            dedup: Ledger of already-evaluated trade ids.
            oracle: Wallet oracle; None skips wallet enrichment.
            analyzer: Suspicion analyzer; None always uses the fallback.
            concurrency: Maximum evaluations in flight.
            qualification_threshold: Heuristic score a trade must exceed
                before external collaborators are consulted.
            insider_addresses: Lowercased insider denylist.
            min_alert_level: Lowest fused level that produces an alert.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.stats = stats or RunningStatsTracker()
        self.dedup = dedup or InMemoryDedupLedger()
        self._oracle = oracle
        self._analyzer = analyzer
        self._concurrency = concurrency
        self._qualification_threshold = qualification_threshold
        self._insider_addresses = insider_addresses
        self._min_alert_level = min_alert_level

    @property
    def concurrency(self) -> int:
        """Maximum evaluations in flight."""
        return self._concurrency

    async def close(self) -> None:
        """Close the oracle, analyzer and dedup ledger."""
        if self._oracle is not None:
            await self._oracle.close()
        if self._analyzer is not None:
            await self._analyzer.close()
        await self.dedup.close()

    async def evaluate(
        self,
        candidates: Sequence[Trade],
        markets: Mapping[str, Market],
    ) -> list[SuspiciousActivity]:
        """Evaluate a batch of candidates.

        Candidates whose market is unknown are skipped without touching the
        dedup ledger, so they can be evaluated once the market is loaded.

        The dedup gate runs first for the whole batch. Admitted trades then
        update the market statistics in arrival order, so each z-score sees
        every earlier trade of its market however the dedup calls complete.
        Only the scoring after that point runs out of order.

        Args:
            candidates: Trades to evaluate, in arrival order.
            markets: Tracked markets keyed by id.

        Returns:
            Alerts produced by the batch, in no particular order.
        """
        semaphore = asyncio.Semaphore(self._concurrency)

        known: list[tuple[Trade, Market]] = []
        for trade in candidates:
            market = markets.get(trade.market_id)
            if market is None:
                logger.debug("Skipping trade %s: unknown market %s", trade.id, trade.market_id)
                continue
            known.append((trade, market))

        async def admit(trade: Trade) -> bool:
            async with semaphore:
                return await self.dedup.check_and_mark(trade.id)

        marks = await asyncio.gather(*(admit(t) for t, _ in known), return_exceptions=True)

        async def run(
            trade: Trade, market: Market, before: MarketStats
        ) -> SuspiciousActivity | None:
            async with semaphore:
                try:
                    return await self._score(trade, market, before)
                except Exception:
                    EVALUATION_FAILURES.inc()
                    logger.exception("Evaluation failed for trade %s", trade.id)
                    return None

        jobs = []
        for (trade, market), admitted in zip(known, marks, strict=True):
            if isinstance(admitted, BaseException):
                EVALUATION_FAILURES.inc()
                logger.error("Dedup check failed for trade %s: %s", trade.id, admitted)
                continue
            if not admitted:
                TRADES_DEDUPLICATED.inc()
                continue
            TRADES_EVALUATED.inc()
            before, _ = self.stats.observe(market.id, trade.size)
            jobs.append(run(trade, market, before))

        results = await asyncio.gather(*jobs)
        alerts = [alert for alert in results if alert is not None]

        logger.debug("Evaluated %d candidates, %d alerts", len(jobs), len(alerts))
        return alerts

    async def evaluate_one(self, trade: Trade, market: Market) -> SuspiciousActivity | None:
        """Run one trade through the full scoring path.

        Args:
            trade: Trade to evaluate.
            market: Market the trade belongs to.

        Returns:
            The alert, or None if the trade was already seen or did not
            qualify.
        """
        if not await self.dedup.check_and_mark(trade.id):
            TRADES_DEDUPLICATED.inc()
            return None
        TRADES_EVALUATED.inc()

        before, _ = self.stats.observe(market.id, trade.size)
        return await self._score(trade, market, before)

    async def _score(
        self, trade: Trade, market: Market, before: MarketStats
    ) -> SuspiciousActivity | None:
        """Score an admitted trade against the stats snapshot taken before it."""
        heuristic = score_trade(
            trade, market, before, False, insider_addresses=self._insider_addresses
        )
        if heuristic.base_score <= self._qualification_threshold:
            return None

        wallet_stats, whale = await self._profile(trade)
        if whale or wallet_stats is not None:
            heuristic = score_trade(
                trade,
                market,
                before,
                whale,
                insider_addresses=self._insider_addresses,
                wallet_stats=wallet_stats,
            )

        return await self._conclude(trade, market, heuristic, wallet_stats)

    async def _profile(self, trade: Trade) -> tuple[WalletStats | None, bool]:
        """Fetch wallet history and whale status concurrently."""
        if self._oracle is None:
            return None, False

        stats, whale = await asyncio.gather(
            self._oracle.get_wallet_stats(trade.maker_address),
            is_whale(self._oracle, trade.market_id, trade.maker_address),
        )
        if stats is not None:
            stats = dataclasses.replace(stats, is_whale=whale)
        return stats, whale

    async def _conclude(
        self,
        trade: Trade,
        market: Market,
        heuristic: HeuristicResult,
        wallet_stats: WalletStats | None,
    ) -> SuspiciousActivity | None:
        analysis, used_fallback = await analyze_with_fallback(
            self._analyzer, trade, market, heuristic.factors, wallet_stats
        )
        final_score, level = fuse(heuristic.base_score, analysis.score)

        if not level.at_least(self._min_alert_level):
            logger.debug(
                "Trade %s scored %d (%s), below alert level", trade.id, final_score, level.value
            )
            return None

        alert = SuspiciousActivity(
            id=trade.id,
            trade=trade,
            suspicion_score=final_score,
            level=level,
            reasoning=analysis.reasoning,
            factors=merge_factors(heuristic.factors, analysis.factors),
            wallet_stats=wallet_stats,
            base_score=heuristic.base_score,
            analyzer_score=round(analysis.score),
            used_fallback=used_fallback,
        )

        ALERTS_EMITTED.labels(level=level.value).inc()
        logger.info(
            "Suspicious trade: id=%s, market=%s, wallet=%s, size=$%.0f, score=%d, level=%s",
            trade.id,
            market.id[:12],
            trade.maker_address[:10] + "...",
            trade.size,
            final_score,
            level.value,
        )
        return alert
