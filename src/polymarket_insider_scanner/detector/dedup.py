"""Ledger of trade ids that have already been evaluated.

The ledger is the gate at the start of every evaluation: a trade id passes
it at most once, so feeds that re-deliver the same fill across polls never
cost a second round of oracle and analyzer calls.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import Protocol

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

DEFAULT_REDIS_KEY_PREFIX = "polymarket:scanner:seen:"


class DedupLedger(Protocol):
    """Tracks evaluated trade ids."""

    async def check_and_mark(self, trade_id: str) -> bool:
        """Atomically mark ``trade_id`` as seen.

        Returns:
            True if the id was new (the caller should evaluate it), False if
            it had already been marked.
        """
        ...

    async def seen(self, trade_id: str) -> bool:
        """Return True if ``trade_id`` has been marked."""
        ...

    async def reset(self) -> None:
        """Forget every marked id."""
        ...

    async def close(self) -> None:
        """Release any held connections."""
        ...


class InMemoryDedupLedger:
    """Process-local dedup ledger.

    Grows for the lifetime of the process unless ``reset()`` is called.
    """

    def __init__(self) -> None:
        """Initialize an empty ledger."""
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, trade_id: object) -> bool:
        return trade_id in self._seen

    async def check_and_mark(self, trade_id: str) -> bool:
        """Mark ``trade_id`` and report whether it was new."""
        with self._lock:
            if trade_id in self._seen:
                return False
            self._seen.add(trade_id)
            return True

    async def seen(self, trade_id: str) -> bool:
        """Return True if ``trade_id`` has been marked."""
        return trade_id in self._seen

    def mark_seen(self, trade_id: str) -> None:
        """Mark ``trade_id`` without checking."""
        with self._lock:
            self._seen.add(trade_id)

    async def reset(self) -> None:
        """Forget every marked id."""
        with self._lock:
            count = len(self._seen)
            self._seen.clear()
        logger.info("Dedup ledger reset (%d ids forgotten)", count)

    async def close(self) -> None:
        """Nothing to release."""


class RedisDedupLedger:
    """Dedup ledger shared between processes through Redis.

    Uses ``SET key value NX`` so check and mark happen in one round trip.

    Example:
        ```python
        redis = Redis.from_url("redis://localhost:6379")
        ledger = RedisDedupLedger(redis)

        if await ledger.check_and_mark(trade.id):
            await evaluate(trade)
        ```
    """

    def __init__(
        self,
        redis: Redis,
        *,
        key_prefix: str = DEFAULT_REDIS_KEY_PREFIX,
        ttl_seconds: int | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            redis: Redis async client.
            key_prefix: Prefix for the per-trade keys.
            ttl_seconds: Optional expiry of marks; None keeps them forever.
        """
        self._redis = redis
        self._key_prefix = key_prefix
        self._ttl = ttl_seconds

    def _key(self, trade_id: str) -> str:
        return f"{self._key_prefix}{trade_id}"

    async def check_and_mark(self, trade_id: str) -> bool:
        """Mark ``trade_id`` and report whether it was new."""
        was_set = await self._redis.set(
            self._key(trade_id),
            datetime.now(UTC).isoformat(),
            nx=True,
            ex=self._ttl,
        )
        return bool(was_set)

    async def seen(self, trade_id: str) -> bool:
        """Return True if ``trade_id`` has been marked."""
        return bool(await self._redis.exists(self._key(trade_id)))

    async def reset(self) -> None:
        """Delete every mark under the key prefix."""
        deleted = 0
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._key_prefix}*", count=500
            )
            if keys:
                deleted += await self._redis.delete(*keys)
            if cursor == 0:
                break
        logger.info("Dedup ledger reset (%d ids forgotten)", deleted)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._redis.aclose()
