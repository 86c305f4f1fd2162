"""Market and trade feed backed by the public Polymarket APIs.

Markets come from the Gamma API (events sorted by volume) and recent fills
from the Data API. Both endpoints are unauthenticated JSON over HTTPS.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from polymarket_insider_scanner.errors import SourceError
from polymarket_insider_scanner.ingestor.models import Market, Trade, now_millis

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_GAMMA_URL = "https://gamma-api.polymarket.com"
DEFAULT_DATA_URL = "https://data-api.polymarket.com"
DEFAULT_MARKET_LIMIT = 20
DEFAULT_MARKETS_PER_TICK = 5
DEFAULT_TRADES_PER_MARKET = 20
DEFAULT_FRESHNESS_WINDOW_SECONDS = 3600  # 1 hour
DEFAULT_TIMEOUT_SECONDS = 10.0


class TradeSource(Protocol):
    """Supplies tracked markets and recent trades for each polling tick."""

    async def list_tracked_markets(self) -> list[Market]:
        """Return the markets to monitor. An empty list signals a feed error."""
        ...

    async def list_recent_trades(self, markets: Sequence[Market]) -> list[Trade]:
        """Return trades inside the source's freshness window, newest first."""
        ...

    async def close(self) -> None:
        """Release any held connections."""
        ...


class PolymarketTradeSource:
    """Trade source reading the Gamma and Data APIs.

    Example:
        ```python
        source = PolymarketTradeSource()
        markets = await source.list_tracked_markets()
        trades = await source.list_recent_trades(markets)
        await source.close()
        ```
    """

    def __init__(
        self,
        *,
        gamma_url: str = DEFAULT_GAMMA_URL,
        data_url: str = DEFAULT_DATA_URL,
        market_limit: int = DEFAULT_MARKET_LIMIT,
        markets_per_tick: int = DEFAULT_MARKETS_PER_TICK,
        trades_per_market: int = DEFAULT_TRADES_PER_MARKET,
        freshness_window_seconds: float = DEFAULT_FRESHNESS_WINDOW_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            gamma_url: Base URL of the Gamma API.
            data_url: Base URL of the Data API.
            market_limit: Number of top events to request per market refresh.
            markets_per_tick: Number of markets polled for trades per tick.
            trades_per_market: Maximum trades requested per market.
            freshness_window_seconds: Trades older than this are dropped.
            timeout: HTTP timeout in seconds.
            client: Optional pre-built HTTP client (mainly for tests).
        """
        self._gamma_url = gamma_url.rstrip("/")
        self._data_url = data_url.rstrip("/")
        self._market_limit = market_limit
        self._markets_per_tick = markets_per_tick
        self._trades_per_market = trades_per_market
        self._freshness_window_ms = int(freshness_window_seconds * 1000)
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise SourceError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise SourceError(f"Invalid JSON from {url}: {e}") from e

    async def list_tracked_markets(self) -> list[Market]:
        """Fetch open markets of the highest-volume events.

        Returns:
            Parsed markets, or an empty list when the feed is unavailable.
        """
        try:
            events = await self._get_json(
                f"{self._gamma_url}/events",
                {
                    "limit": self._market_limit,
                    "order": "volume",
                    "ascending": "false",
                    "closed": "false",
                },
            )
        except SourceError as e:
            logger.warning("Market feed unavailable: %s", e)
            return []

        if not isinstance(events, list):
            logger.warning("Unexpected events payload type: %s", type(events).__name__)
            return []

        markets: list[Market] = []
        for event in events:
            if not isinstance(event, dict) or event.get("closed"):
                continue
            for raw in event.get("markets") or []:
                if not isinstance(raw, dict) or raw.get("closed"):
                    continue
                try:
                    markets.append(Market.from_gamma_dict(raw))
                except (TypeError, ValueError) as e:
                    logger.warning("Skipping malformed market %s: %s", raw.get("id"), e)

        logger.debug("Loaded %d markets from %d events", len(markets), len(events))
        return markets

    async def _trades_for_market(self, market: Market) -> list[Trade]:
        records = await self._get_json(
            f"{self._data_url}/trades",
            {"market": market.id, "limit": self._trades_per_market},
        )
        if not isinstance(records, list):
            raise SourceError(f"Unexpected trades payload for market {market.id}")

        trades: list[Trade] = []
        for raw in records:
            if not isinstance(raw, dict):
                continue
            try:
                trades.append(Trade.from_data_api_dict(raw, market))
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(
                    "Skipping malformed trade %s on %s: %s",
                    raw.get("transactionHash"),
                    market.id,
                    e,
                )
        return trades

    async def list_recent_trades(self, markets: Sequence[Market]) -> list[Trade]:
        """Fetch recent trades for the top markets.

        Failures for an individual market are logged and skipped so one bad
        market does not blank out the whole tick.

        Args:
            markets: Tracked markets, highest priority first.

        Returns:
            Trades inside the freshness window, newest first.
        """
        polled = list(markets[: self._markets_per_tick])
        if not polled:
            return []

        results = await asyncio.gather(
            *(self._trades_for_market(m) for m in polled),
            return_exceptions=True,
        )

        cutoff = now_millis() - self._freshness_window_ms
        trades: list[Trade] = []
        for market, result in zip(polled, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Failed to fetch trades for %s: %s", market.id, result)
                continue
            trades.extend(t for t in result if t.timestamp > cutoff)

        trades.sort(key=lambda t: t.timestamp, reverse=True)
        return trades
