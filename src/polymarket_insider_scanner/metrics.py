"""Prometheus metrics for the scanning pipeline."""

from prometheus_client import Counter, Gauge, Histogram

SCAN_CYCLES = Counter(
    "scanner_cycles_total",
    "Scan cycles by outcome",
    ["outcome"],
)

CYCLE_DURATION = Histogram(
    "scanner_cycle_duration_seconds",
    "Wall time of completed scan cycles",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

TRADES_EVALUATED = Counter(
    "scanner_trades_evaluated_total",
    "Candidate trades that passed the dedup gate",
)

TRADES_DEDUPLICATED = Counter(
    "scanner_trades_deduplicated_total",
    "Candidate trades skipped because they were already evaluated",
)

EVALUATION_FAILURES = Counter(
    "scanner_evaluation_failures_total",
    "Candidate evaluations that raised",
)

ALERTS_EMITTED = Counter(
    "scanner_alerts_total",
    "Alerts produced by level",
    ["level"],
)

ANALYZER_FALLBACKS = Counter(
    "scanner_analyzer_fallbacks_total",
    "Analyzer calls replaced by the heuristic fallback",
)

RETAINED_ALERTS = Gauge(
    "scanner_retained_alerts",
    "Alerts currently held by the alert ledger",
)
