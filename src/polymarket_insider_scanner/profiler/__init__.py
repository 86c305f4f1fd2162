"""Wallet profiler - trader history, holder lookups and suspicion analysis.

``profiler.oracle`` and ``profiler.analyzer`` depend on the detector
models and are imported directly rather than re-exported here.
"""

from polymarket_insider_scanner.profiler.models import KNOWN_INSIDER_ADDRESS, WalletStats

__all__ = [
    "KNOWN_INSIDER_ADDRESS",
    "WalletStats",
]
