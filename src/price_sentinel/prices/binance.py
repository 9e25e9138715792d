"""Binance price source — public ``/api/v3/ticker/price`` endpoint.

The ticker endpoint returns ``{"symbol": "NEARUSDT", "price": "4.51000000"}``
with the price encoded as a decimal string.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from price_sentinel.core.exceptions import PriceParseError
from price_sentinel.prices.http import JsonQuoteClient, coerce_price

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.binance.com"
_TICKER_PATH = "/api/v3/ticker/price"


class BinanceTickerAdapter:
    """Parses a ticker-price body for one trading pair."""

    def adapt(self, raw_data: Any, asset: str) -> float:
        if not isinstance(raw_data, dict) or "price" not in raw_data:
            raise PriceParseError(
                f"Binance returned no price for {asset}",
                context={"asset": asset, "body": repr(raw_data)[:200]},
            )
        symbol = raw_data.get("symbol")
        if symbol is not None and str(symbol).upper() != asset.upper():
            raise PriceParseError(
                f"Binance answered for {symbol}, expected {asset}",
                context={"asset": asset, "body": repr(raw_data)[:200]},
            )
        return coerce_price(raw_data["price"], asset)


class BinancePriceSource:
    """Fetches the last traded price of one Binance symbol.

    Parameters
    ----------
    symbol : str
        Trading pair, e.g. ``"NEARUSDT"``.
    base_url : str
        Override base URL (useful for testing).
    timeout : float
        HTTP request timeout in seconds.
    client : httpx.AsyncClient | None
        Optional injected client.
    """

    def __init__(
        self,
        symbol: str,
        base_url: str = _BASE_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        adapter: BinanceTickerAdapter | None = None,
    ) -> None:
        self._symbol = symbol.upper()
        self._url = f"{base_url.rstrip('/')}{_TICKER_PATH}"
        self._http = JsonQuoteClient(timeout=timeout, client=client)
        self._adapter = adapter or BinanceTickerAdapter()

    async def fetch_price(self) -> float:
        raw = await self._http.get_json(self._url, params={"symbol": self._symbol})
        price = self._adapter.adapt(raw, self._symbol)
        logger.debug("Binance %s price: %.4f", self._symbol, price)
        return price

    async def aclose(self) -> None:
        await self._http.aclose()
