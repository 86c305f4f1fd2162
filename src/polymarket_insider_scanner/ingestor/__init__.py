"""Data ingestion layer - Polymarket market and trade feeds.

The simulated feed lives in ``ingestor.simulation`` and is imported
directly where needed.
"""

from polymarket_insider_scanner.ingestor.models import (
    Market,
    Side,
    Trade,
    make_trade_id,
    now_millis,
    parse_json_list,
)
from polymarket_insider_scanner.ingestor.source import (
    PolymarketTradeSource,
    TradeSource,
)

__all__ = [
    "Market",
    "PolymarketTradeSource",
    "Side",
    "Trade",
    "TradeSource",
    "make_trade_id",
    "now_millis",
    "parse_json_list",
]
