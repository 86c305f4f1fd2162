"""Alerter module - Retained view of suspicious activity."""

from polymarket_insider_scanner.alerter.ledger import DEFAULT_CAPACITY, AlertLedger

__all__ = [
    "DEFAULT_CAPACITY",
    "AlertLedger",
]
