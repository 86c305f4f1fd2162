"""Scan scheduler driving the detection pipeline.

The scheduler owns the scan loop: it refreshes the tracked markets, pulls
recent trades, filters candidates and hands them to the evaluator, then
merges the resulting alerts into the ledger. Cycles never overlap; a tick
that fires while a cycle is still running is skipped rather than queued.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from polymarket_insider_scanner.alerter.ledger import AlertLedger
from polymarket_insider_scanner.detector.evaluator import TradeEvaluator
from polymarket_insider_scanner.detector.models import SuspiciousActivity
from polymarket_insider_scanner.ingestor.models import Market, now_millis
from polymarket_insider_scanner.ingestor.simulation import SCENARIO_MARKET, build_backtest_scenario
from polymarket_insider_scanner.ingestor.source import TradeSource
from polymarket_insider_scanner.metrics import CYCLE_DURATION, SCAN_CYCLES

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_POLL_INTERVAL_SECONDS = 6.0
DEFAULT_MIN_TRADE_SIZE = 200.0
DEFAULT_RECENCY_WINDOW_SECONDS = 30 * 60
DEFAULT_MARKET_REFRESH_SECONDS = 300

# Status messages
STATUS_INITIALIZING = "Initializing..."
STATUS_CONNECTING = "Connecting to Polymarket Data Feed..."
STATUS_SCANNING = "Scanning Order Books for Active Trades..."
STATUS_NO_ANOMALIES = "No anomalies in current tick. Listening..."
STATUS_FEED_UNAVAILABLE = "Market feed unavailable. Retrying next cycle..."
STATUS_PAUSED = "Scanner Paused"
STATUS_BACKTEST_RUNNING = 'Running Historic "Maduro" Scenario...'
STATUS_BACKTEST_FLAGGED = "Backtest Complete. Suspicious pattern identified."
STATUS_BACKTEST_CLEAR = "Backtest Complete. No anomaly detected."
STATUS_BACKTEST_FAILED = "Backtest failed. See logs for details."


class ScanState(str, Enum):
    """Whether the scan loop is running."""

    IDLE = "idle"
    SCANNING = "scanning"


@dataclass
class CycleStats:
    """Counters for the scan loop."""

    cycles_completed: int = 0
    cycles_skipped: int = 0
    cycles_failed: int = 0
    trades_fetched: int = 0
    candidates_evaluated: int = 0
    alerts_emitted: int = 0
    last_cycle_time: datetime | None = None
    last_cycle_duration_seconds: float = 0.0
    last_error: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "cycles_completed": self.cycles_completed,
            "cycles_skipped": self.cycles_skipped,
            "cycles_failed": self.cycles_failed,
            "trades_fetched": self.trades_fetched,
            "candidates_evaluated": self.candidates_evaluated,
            "alerts_emitted": self.alerts_emitted,
            "last_cycle_time": self.last_cycle_time.isoformat() if self.last_cycle_time else None,
            "last_cycle_duration_seconds": round(self.last_cycle_duration_seconds, 3),
            "last_error": self.last_error,
        }


class ScanScheduler:
    """Periodic, non-overlapping scanner of recent Polymarket trades.

    Example:
        ```python
        scheduler = ScanScheduler(source=source, evaluator=evaluator)
        await scheduler.start()

        for alert in scheduler.alerts:
            print(alert.level, alert.reasoning)

        await scheduler.stop()
        ```
    """

    def __init__(
        self,
        *,
        source: TradeSource,
        evaluator: TradeEvaluator,
        ledger: AlertLedger | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        min_trade_size: float = DEFAULT_MIN_TRADE_SIZE,
        recency_window_seconds: int = DEFAULT_RECENCY_WINDOW_SECONDS,
        market_refresh_seconds: int = DEFAULT_MARKET_REFRESH_SECONDS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            source: Market and trade feed.
            evaluator: Candidate evaluator.
            ledger: Alert ledger (a default-capacity one if omitted).
            poll_interval_seconds: Wait between the end of one cycle and
                the next.
            min_trade_size: Trades at or below this USD size are ignored.
            recency_window_seconds: Trades older than this are ignored.
            market_refresh_seconds: Maximum age of the market list.
        """
        self._source = source
        self._evaluator = evaluator
        self._ledger = ledger or AlertLedger()
        self._poll_interval = poll_interval_seconds
        self._min_trade_size = min_trade_size
        self._recency_window_ms = recency_window_seconds * 1000
        self._market_refresh_seconds = market_refresh_seconds

        self._state = ScanState.IDLE
        self._status = STATUS_INITIALIZING
        self._stats = CycleStats()
        self._markets: dict[str, Market] = {}
        self._markets_loaded_at: float | None = None

        self._driver_task: asyncio.Task[None] | None = None
        self._in_flight: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._generation = 0

    @property
    def state(self) -> ScanState:
        """Current scan state."""
        return self._state

    @property
    def status(self) -> str:
        """Human-readable description of the latest activity."""
        return self._status

    @property
    def alerts(self) -> list[SuspiciousActivity]:
        """Retained alerts in rank order."""
        return self._ledger.alerts

    @property
    def ledger(self) -> AlertLedger:
        """The alert ledger."""
        return self._ledger

    @property
    def cycle_stats(self) -> CycleStats:
        """Scan loop counters."""
        return self._stats

    @property
    def markets(self) -> list[Market]:
        """Currently tracked markets."""
        return list(self._markets.values())

    @property
    def cycle_in_flight(self) -> bool:
        """Check if a scan cycle is currently running."""
        return self._in_flight is not None and not self._in_flight.done()

    async def start(self) -> None:
        """Start scanning.

        Clears the retained alerts, runs one cycle immediately, then keeps
        scanning every ``poll_interval_seconds`` until stopped. Does nothing
        if already scanning.
        """
        if self._state == ScanState.SCANNING:
            logger.debug("Scanner already running")
            return

        self._state = ScanState.SCANNING
        self._stop_event.clear()
        self._ledger.clear()
        generation = self._generation
        logger.info("Scanner started (interval %.1fs)", self._poll_interval)

        await self.tick()

        # A stop (and possibly a newer start) during the first tick owns the loop now
        if (
            self._state == ScanState.SCANNING
            and self._generation == generation
            and self._driver_task is None
        ):
            self._driver_task = asyncio.create_task(self._drive())

    async def stop(self) -> None:
        """Stop scanning.

        Cancels the pending wait. A cycle already in flight is allowed to
        finish and merge its alerts.
        """
        self._generation += 1
        self._stop_event.set()
        if self._driver_task is not None:
            self._driver_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._driver_task
            self._driver_task = None

        self._in_flight = None
        if self._state == ScanState.SCANNING:
            logger.info("Scanner stopped")
        self._state = ScanState.IDLE
        self._status = STATUS_PAUSED

    async def close(self) -> None:
        """Stop scanning and release the feed and evaluator resources."""
        await self.stop()
        await self._source.close()
        await self._evaluator.close()

    async def reset(self) -> None:
        """Forget evaluated trade ids and market statistics."""
        await self._evaluator.dedup.reset()
        self._evaluator.stats.reset()

    async def tick(self) -> bool:
        """Run one scan cycle unless one is already running.

        Returns:
            True if a cycle ran, False if it was skipped.
        """
        if self.cycle_in_flight:
            self._stats.cycles_skipped += 1
            SCAN_CYCLES.labels(outcome="skipped").inc()
            logger.debug("Scan cycle still running, skipping tick")
            return False

        task = asyncio.create_task(self._run_cycle())
        self._in_flight = task
        try:
            await asyncio.shield(task)
        finally:
            if task.done() and self._in_flight is task:
                self._in_flight = None
        return True

    async def _drive(self) -> None:
        """Background loop re-running the cycle after each interval."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
                break
            except TimeoutError:
                pass

            await self.tick()

    async def _run_cycle(self) -> None:
        start = time.perf_counter()
        try:
            outcome = await self._scan()
        except Exception as e:
            self._stats.cycles_failed += 1
            self._stats.last_error = str(e)
            self._status = f"Scan cycle failed: {e}"
            SCAN_CYCLES.labels(outcome="failed").inc()
            logger.exception("Scan cycle failed")
            return

        duration = time.perf_counter() - start
        self._stats.cycles_completed += 1
        self._stats.last_cycle_time = datetime.now(UTC)
        self._stats.last_cycle_duration_seconds = duration
        self._stats.last_error = None
        SCAN_CYCLES.labels(outcome=outcome).inc()
        CYCLE_DURATION.observe(duration)

    async def _scan(self) -> str:
        """Run one cycle and return its outcome label."""
        await self._refresh_markets()
        if not self._markets:
            self._status = STATUS_FEED_UNAVAILABLE
            return "unavailable"

        self._status = STATUS_SCANNING
        trades = await self._source.list_recent_trades(list(self._markets.values()))
        self._stats.trades_fetched += len(trades)

        cutoff = now_millis() - self._recency_window_ms
        candidates = [
            t for t in trades if t.size > self._min_trade_size and t.timestamp > cutoff
        ]
        if not candidates:
            self._status = STATUS_NO_ANOMALIES
            return "empty"

        alerts = await self._evaluator.evaluate(candidates, self._markets)
        self._stats.candidates_evaluated += len(candidates)
        self._stats.alerts_emitted += len(alerts)
        if alerts:
            self._ledger.merge(alerts)

        self._status = (
            f"Tick complete: {len(candidates)} candidates, {len(alerts)} new alerts. Listening..."
        )
        logger.info(
            "Scan cycle: %d trades, %d candidates, %d alerts",
            len(trades),
            len(candidates),
            len(alerts),
        )
        return "completed"

    async def _refresh_markets(self) -> None:
        """Reload the tracked markets when missing or stale."""
        now = time.monotonic()
        if (
            self._markets
            and self._markets_loaded_at is not None
            and now - self._markets_loaded_at < self._market_refresh_seconds
        ):
            return

        if not self._markets:
            self._status = STATUS_CONNECTING
        markets = await self._source.list_tracked_markets()
        if not markets:
            if self._markets:
                logger.warning(
                    "Market refresh returned nothing, keeping %d markets", len(self._markets)
                )
            return

        self._markets = {m.id: m for m in markets}
        self._markets_loaded_at = now
        self._status = f"Connected. Monitoring {len(markets)} Active Markets."
        logger.info("Tracking %d markets", len(markets))

    async def run_backtest(self) -> SuspiciousActivity | None:
        """Stop scanning and replay the historical insider scenario.

        Returns:
            The scenario alert, or None if it produced none.
        """
        await self.stop()
        self._ledger.clear()
        self._status = STATUS_BACKTEST_RUNNING
        logger.info("Running backtest scenario")

        trade = build_backtest_scenario()
        market = self._markets.get(trade.market_id, SCENARIO_MARKET)

        try:
            alert = await self._evaluator.evaluate_one(trade, market)
        except Exception:
            logger.exception("Backtest scenario failed")
            self._status = STATUS_BACKTEST_FAILED
            return None

        if alert is None:
            self._status = STATUS_BACKTEST_CLEAR
            return None

        self._ledger.merge([alert])
        self._status = STATUS_BACKTEST_FLAGGED
        return alert

    def status_summary(self) -> dict[str, object]:
        """Snapshot of the scanner for the status endpoint."""
        return {
            "state": self._state.value,
            "status": self._status,
            "markets": len(self._markets),
            "alerts": len(self._ledger),
            "alerts_by_level": {
                level.value: count for level, count in self._ledger.counts_by_level().items()
            },
            "cycle_in_flight": self.cycle_in_flight,
            "cycles": self._stats.to_dict(),
        }
