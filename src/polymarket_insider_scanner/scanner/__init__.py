"""Scanner module - Scan loop, component wiring and HTTP surface."""

from polymarket_insider_scanner.scanner.factory import build_scanner
from polymarket_insider_scanner.scanner.health import HealthServer, HealthStatus
from polymarket_insider_scanner.scanner.scheduler import CycleStats, ScanScheduler, ScanState

__all__ = [
    "CycleStats",
    "HealthServer",
    "HealthStatus",
    "ScanScheduler",
    "ScanState",
    "build_scanner",
]
