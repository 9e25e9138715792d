"""Price retrieval for the single tracked asset.

Architecture
------------
    Quote API → PriceSource → PriceCache → MatchingEngine / commands

Key abstractions:

- ``PriceSource``: one async call returning the current price or a typed error.
- ``PriceAdapter``: turns an upstream JSON body into a positive float.
- ``PriceCache``: freshness-window cache with a bounded retry policy.

Built-in sources:

- ``CoinGeckoPriceSource``: ``{"<id>": {"usd": <number>}}`` simple-price API.
- ``BinancePriceSource``: exchange ticker ``{"symbol": ..., "price": "..."}``.
"""

from price_sentinel.core.config import PriceProviderName, PriceSourceConfig
from price_sentinel.prices.binance import BinancePriceSource, BinanceTickerAdapter
from price_sentinel.prices.cache import PriceCache
from price_sentinel.prices.coingecko import CoinGeckoAdapter, CoinGeckoPriceSource
from price_sentinel.prices.provider import PriceAdapter, PriceSource


def create_price_source(config: PriceSourceConfig) -> PriceSource:
    """Build the configured upstream source."""
    kwargs = {"base_url": config.base_url} if config.base_url else {}
    if config.provider == PriceProviderName.BINANCE:
        return BinancePriceSource(
            config.symbol, timeout=config.request_timeout, **kwargs
        )
    return CoinGeckoPriceSource(
        config.asset_id, timeout=config.request_timeout, **kwargs
    )


__all__ = [
    # Protocols
    "PriceAdapter",
    "PriceSource",
    # CoinGecko
    "CoinGeckoAdapter",
    "CoinGeckoPriceSource",
    # Binance
    "BinanceTickerAdapter",
    "BinancePriceSource",
    # Cache
    "PriceCache",
    "create_price_source",
]
