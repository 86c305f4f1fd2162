"""Data models for the ingestor module."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

Side = Literal["BUY", "SELL"]

DEFAULT_OUTCOMES = ("Yes", "No")
DEFAULT_OUTCOME_PRICES = (0.5, 0.5)


def make_trade_id(transaction_hash: str, outcome_index: int, timestamp_ms: int) -> str:
    """Build the composite trade identifier.

    A single transaction can fill several outcomes and the feed may
    re-deliver the same fill across polls, so the hash alone is not unique.
    """
    return f"{transaction_hash}-{outcome_index}-{timestamp_ms}"


def parse_json_list(value: Any, fallback: tuple[Any, ...]) -> list[Any]:
    """Parse a list that the Gamma API may deliver as a JSON-encoded string.

    Args:
        value: Raw field value (list, JSON string, or missing).
        fallback: Value returned when the field is missing or unparseable.

    Returns:
        The decoded list, or a list copy of ``fallback``.
    """
    if not value:
        return list(fallback)
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.startswith("["):
            return list(fallback)
        try:
            decoded = json.loads(stripped)
        except json.JSONDecodeError:
            logger.warning("Could not decode list field: %r", value)
            return list(fallback)
        if isinstance(decoded, list):
            return decoded
    return list(fallback)


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Market:
    """A tracked prediction market.

    Attributes:
        id: Condition ID, the stable key used by the Data API and statistics.
        question: Human-readable market question.
        volume: Lifetime traded volume in USD.
        liquidity: Current order book liquidity in USD.
        outcomes: Ordered outcome labels.
        outcome_prices: Probabilities parallel to ``outcomes``.
        gamma_id: Gamma API identifier, if known.
        slug: Market URL slug.
        end_date: Resolution date as delivered by the API.
    """

    id: str
    question: str
    volume: float
    liquidity: float
    outcomes: tuple[str, ...] = DEFAULT_OUTCOMES
    outcome_prices: tuple[float, ...] = DEFAULT_OUTCOME_PRICES
    gamma_id: str = ""
    slug: str = ""
    end_date: str = ""

    @classmethod
    def from_gamma_dict(cls, data: dict[str, Any]) -> Market:
        """Create a Market from a Gamma API market payload."""
        outcomes = parse_json_list(data.get("outcomes"), DEFAULT_OUTCOMES)
        prices = parse_json_list(data.get("outcomePrices"), DEFAULT_OUTCOME_PRICES)

        return cls(
            id=str(data.get("conditionId") or data.get("id", "")),
            question=str(data.get("question", "")),
            volume=max(_to_float(data.get("volume")), 0.0),
            liquidity=max(_to_float(data.get("liquidity")), 0.0),
            outcomes=tuple(str(o) for o in outcomes),
            outcome_prices=tuple(_to_float(p, 0.5) for p in prices),
            gamma_id=str(data.get("id", "")),
            slug=str(data.get("slug", "")),
            end_date=str(data.get("endDate", "")),
        )

    def price_for(self, outcome_index: int) -> float | None:
        """Return the quoted probability for an outcome, if known."""
        if 0 <= outcome_index < len(self.outcome_prices):
            return self.outcome_prices[outcome_index]
        return None

    def label_for(self, outcome_index: int) -> str:
        """Return the outcome label, defaulting to ``Yes``."""
        if 0 <= outcome_index < len(self.outcomes):
            return self.outcomes[outcome_index]
        return "Yes"


@dataclass(frozen=True)
class Trade:
    """A single trade execution.

    Attributes:
        id: Composite identifier, see ``make_trade_id``.
        market_id: Condition ID of the traded market.
        outcome_index: Index into the market's outcomes.
        outcome_label: Human-readable outcome.
        side: BUY or SELL.
        price: Execution price in [0, 1].
        size: USD notional of the trade.
        timestamp: Execution time in epoch milliseconds.
        maker_address: Trader wallet address.
        transaction_hash: On-chain transaction reference.
        market_question: Question of the traded market, for display.
    """

    id: str
    market_id: str
    outcome_index: int
    outcome_label: str
    side: Side
    price: float
    size: float
    timestamp: int
    maker_address: str
    transaction_hash: str
    market_question: str = ""

    @classmethod
    def from_data_api_dict(cls, data: dict[str, Any], market: Market | None = None) -> Trade:
        """Create a Trade from a Data API ``/trades`` record.

        The Data API reports size in shares; the notional is shares times
        price. Timestamps arrive in epoch seconds.
        """
        price = min(max(_to_float(data.get("price"), 0.5), 0.0), 1.0)
        shares = max(_to_float(data.get("size")), 0.0)
        timestamp_ms = int(_to_float(data.get("timestamp")) * 1000)
        outcome_index = int(_to_float(data.get("outcomeIndex"), 0))
        transaction_hash = str(data.get("transactionHash", ""))

        side_raw = str(data.get("side", "BUY")).upper()
        side: Side = "SELL" if side_raw == "SELL" else "BUY"

        market_id = str(data.get("conditionId") or (market.id if market else ""))
        outcome_label = str(
            data.get("outcome") or (market.label_for(outcome_index) if market else "")
        )

        return cls(
            id=make_trade_id(transaction_hash, outcome_index, timestamp_ms),
            market_id=market_id,
            outcome_index=outcome_index,
            outcome_label=outcome_label,
            side=side,
            price=price,
            size=round(shares * price, 2),
            timestamp=timestamp_ms,
            maker_address=str(data.get("proxyWallet", "")),
            transaction_hash=transaction_hash,
            market_question=str(data.get("title") or (market.question if market else "")),
        )

    @property
    def is_buy(self) -> bool:
        """Return True if this is a buy trade."""
        return self.side == "BUY"

    def age_ms(self, now_ms: int | None = None) -> int:
        """Return the trade age in milliseconds."""
        if now_ms is None:
            now_ms = now_millis()
        return now_ms - self.timestamp

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "market_id": self.market_id,
            "market_question": self.market_question,
            "outcome_index": self.outcome_index,
            "outcome_label": self.outcome_label,
            "side": self.side,
            "price": self.price,
            "size": self.size,
            "timestamp": self.timestamp,
            "maker_address": self.maker_address,
            "transaction_hash": self.transaction_hash,
        }


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
