"""Wallet and holder lookups used to enrich suspicious trades.

This module provides the wallet oracle: given a trader address it returns
a trading-history summary, and given a market it returns the addresses of
the market's largest holders.
"""

from __future__ import annotations

import hashlib
import logging
import time
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx

from polymarket_insider_scanner.errors import OracleError
from polymarket_insider_scanner.profiler.models import KNOWN_INSIDER_ADDRESS, WalletStats

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_DATA_URL = "https://data-api.polymarket.com"
DEFAULT_HOLDER_LIMIT = 20
DEFAULT_HOLDER_CACHE_TTL = 300  # 5 minutes
DEFAULT_ACTIVITY_LIMIT = 500
DEFAULT_TIMEOUT_SECONDS = 10.0


class WalletOracle(Protocol):
    """Provides wallet history and market holder data."""

    async def get_wallet_stats(self, address: str) -> WalletStats | None:
        """Return trading stats for a wallet, or None if it has no history."""
        ...

    async def get_whale_addresses(self, market_id: str) -> list[str]:
        """Return the large-holder addresses of a market."""
        ...

    async def close(self) -> None:
        """Release any held connections."""
        ...


async def is_whale(oracle: WalletOracle, market_id: str, address: str) -> bool:
    """Check whether ``address`` is among the market's large holders."""
    whales = await oracle.get_whale_addresses(market_id)
    target = address.lower()
    return any(w.lower() == target for w in whales)


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


class DataApiWalletOracle:
    """Wallet oracle backed by the Polymarket Data API.

    Holder lists are cached per market for ``holder_cache_ttl`` seconds so a
    burst of trades on one market costs a single ``/holders`` request.
    """

    def __init__(
        self,
        *,
        data_url: str = DEFAULT_DATA_URL,
        holder_limit: int = DEFAULT_HOLDER_LIMIT,
        holder_cache_ttl: float = DEFAULT_HOLDER_CACHE_TTL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the oracle.

        Args:
            data_url: Base URL of the Data API.
            holder_limit: Holders requested per market token.
            holder_cache_ttl: Seconds a market's holder list stays cached.
            timeout: HTTP timeout in seconds.
            client: Optional pre-built HTTP client (mainly for tests).
        """
        self._data_url = data_url.rstrip("/")
        self._holder_limit = holder_limit
        self._holder_cache_ttl = holder_cache_ttl
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._holder_cache: dict[str, tuple[float, list[str]]] = {}

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _get_list(self, path: str, params: dict[str, Any]) -> list[Any]:
        url = f"{self._data_url}{path}"
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise OracleError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise OracleError(f"Invalid JSON from {url}: {e}") from e

        if not isinstance(data, list):
            raise OracleError(f"Expected a list from {url}, got {type(data).__name__}")
        return data

    async def get_wallet_stats(self, address: str) -> WalletStats | None:
        """Summarize a wallet's trade activity and open positions.

        Args:
            address: Wallet address (0x-prefixed).

        Returns:
            WalletStats, or None when the wallet has never traded.

        Raises:
            OracleError: If the Data API cannot be reached or misbehaves.
        """
        activity = await self._get_list(
            "/activity",
            {
                "user": address,
                "type": "TRADE",
                "limit": DEFAULT_ACTIVITY_LIMIT,
                "sortBy": "TIMESTAMP",
                "sortDirection": "ASC",
            },
        )
        if not activity:
            return None

        first_seen = None
        for item in activity:
            if isinstance(item, dict):
                first_seen = _parse_timestamp(item.get("timestamp"))
                if first_seen is not None:
                    break

        age_days = 0.0
        if first_seen is not None:
            age_days = max((datetime.now(UTC) - first_seen).total_seconds() / 86400, 0.0)

        positions = await self._get_list(
            "/positions", {"user": address, "limit": DEFAULT_ACTIVITY_LIMIT}
        )
        pnls = [
            float(p.get("cashPnl") or 0.0) for p in positions if isinstance(p, dict)
        ]
        win_rate = sum(1 for pnl in pnls if pnl > 0) / len(pnls) if pnls else 0.0

        return WalletStats(
            total_trades=len(activity),
            win_rate=round(win_rate, 4),
            account_age_days=round(age_days, 2),
        )

    async def get_whale_addresses(self, market_id: str) -> list[str]:
        """Return top holder addresses across all outcome tokens of a market.

        Raises:
            OracleError: If the Data API cannot be reached or misbehaves.
        """
        cached = self._holder_cache.get(market_id)
        now = time.monotonic()
        if cached is not None and now - cached[0] < self._holder_cache_ttl:
            return list(cached[1])

        tokens = await self._get_list(
            "/holders", {"market": market_id, "limit": self._holder_limit}
        )
        addresses: list[str] = []
        for token in tokens:
            if not isinstance(token, dict):
                continue
            for holder in token.get("holders") or []:
                wallet = holder.get("proxyWallet") if isinstance(holder, dict) else None
                if wallet and wallet not in addresses:
                    addresses.append(str(wallet))

        self._holder_cache[market_id] = (now, addresses)
        return list(addresses)


class SimulatedWalletOracle:
    """Deterministic wallet oracle for demo mode.

    Stats are derived from a hash of the address so a given wallet always
    looks the same. The known insider wallet is reported as a large holder
    of the scenario market.
    """

    def __init__(self, whales: dict[str, list[str]] | None = None) -> None:
        """Initialize the simulated oracle.

        Args:
            whales: Market id to whale addresses. Defaults to the insider
                wallet holding the first demo market.
        """
        self._whales = whales if whales is not None else {"mock-1": [KNOWN_INSIDER_ADDRESS]}

    async def close(self) -> None:
        """Nothing to release."""

    async def get_wallet_stats(self, address: str) -> WalletStats | None:
        """Return pseudo-random but stable stats for ``address``."""
        digest = int(hashlib.sha256(address.lower().encode()).hexdigest(), 16)
        return WalletStats(
            total_trades=digest % 50,
            win_rate=0.65,
            account_age_days=float((digest >> 8) % 30),
        )

    async def get_whale_addresses(self, market_id: str) -> list[str]:
        """Return the configured whales of ``market_id``."""
        return list(self._whales.get(market_id, []))
