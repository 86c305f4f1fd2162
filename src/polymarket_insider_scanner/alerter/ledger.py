"""Bounded, ranked store of the alerts shown to consumers.

The ledger keeps the highest-scoring recent alerts. Every merge re-ranks
the whole set, so the retained view is always the top ``capacity`` alerts
by score, newest first among equal scores.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Iterable

from polymarket_insider_scanner.detector.models import SuspicionLevel, SuspiciousActivity
from polymarket_insider_scanner.metrics import RETAINED_ALERTS

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


def _rank_key(alert: SuspiciousActivity) -> tuple[int, int, str]:
    return (-alert.suspicion_score, -alert.trade.timestamp, alert.id)


class AlertLedger:
    """Retains at most ``capacity`` alerts, one per trade id.

    Example:
        ```python
        ledger = AlertLedger(capacity=50)
        ledger.merge(new_alerts)
        for alert in ledger.alerts:
            print(alert.suspicion_score, alert.reasoning)
        ```
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        """Initialize an empty ledger.

        Args:
            capacity: Maximum number of retained alerts.
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._alerts: list[SuspiciousActivity] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._alerts)

    @property
    def capacity(self) -> int:
        """Maximum number of retained alerts."""
        return self._capacity

    @property
    def alerts(self) -> list[SuspiciousActivity]:
        """Retained alerts in rank order (a copy)."""
        return list(self._alerts)

    def merge(self, new_alerts: Iterable[SuspiciousActivity]) -> list[SuspiciousActivity]:
        """Merge new alerts into the retained set.

        Duplicated ids keep only their best-ranked occurrence.

        Args:
            new_alerts: Alerts produced since the last merge.

        Returns:
            The retained alerts after the merge.
        """
        incoming = list(new_alerts)
        with self._lock:
            combined = sorted([*incoming, *self._alerts], key=_rank_key)
            unique: dict[str, SuspiciousActivity] = {}
            for alert in combined:
                unique.setdefault(alert.id, alert)
            dropped = len(unique) - self._capacity
            self._alerts = list(unique.values())[: self._capacity]
            retained = list(self._alerts)

        RETAINED_ALERTS.set(len(retained))
        if dropped > 0:
            logger.debug("Alert ledger full, dropped %d lowest-ranked alerts", dropped)
        return retained

    def clear(self) -> None:
        """Drop every retained alert."""
        with self._lock:
            self._alerts = []
        RETAINED_ALERTS.set(0)

    def get(self, alert_id: str) -> SuspiciousActivity | None:
        """Return the retained alert with ``alert_id``, if any."""
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        return None

    def counts_by_level(self) -> dict[SuspicionLevel, int]:
        """Count retained alerts per level (every level present)."""
        counts = Counter(alert.level for alert in self._alerts)
        return {level: counts.get(level, 0) for level in SuspicionLevel}
