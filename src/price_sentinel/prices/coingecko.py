"""CoinGecko price source — ``/api/v3/simple/price`` over httpx.

The simple-price endpoint is unauthenticated and returns
``{"<id>": {"usd": <number>}}`` for each requested coin id.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from price_sentinel.core.exceptions import PriceParseError
from price_sentinel.prices.http import JsonQuoteClient, coerce_price

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.coingecko.com"
_SIMPLE_PRICE_PATH = "/api/v3/simple/price"
_VS_CURRENCY = "usd"


class CoinGeckoAdapter:
    """Parses a simple-price body into the USD price of one coin."""

    def adapt(self, raw_data: Any, asset: str) -> float:
        if not isinstance(raw_data, dict):
            raise PriceParseError(
                f"Unexpected CoinGecko body for {asset}",
                context={"asset": asset, "body": repr(raw_data)[:200]},
            )
        quote = raw_data.get(asset)
        if not isinstance(quote, dict) or _VS_CURRENCY not in quote:
            raise PriceParseError(
                f"CoinGecko returned no {_VS_CURRENCY} quote for {asset}",
                context={"asset": asset, "body": repr(raw_data)[:200]},
            )
        return coerce_price(quote[_VS_CURRENCY], asset)


class CoinGeckoPriceSource:
    """Fetches the USD price of one CoinGecko coin id.

    Parameters
    ----------
    asset_id : str
        CoinGecko coin id, e.g. ``"near"``.
    base_url : str
        Override base URL (useful for testing).
    timeout : float
        HTTP request timeout in seconds.
    client : httpx.AsyncClient | None
        Optional injected client.
    """

    def __init__(
        self,
        asset_id: str,
        base_url: str = _BASE_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        adapter: CoinGeckoAdapter | None = None,
    ) -> None:
        self._asset_id = asset_id.lower()
        self._url = f"{base_url.rstrip('/')}{_SIMPLE_PRICE_PATH}"
        self._http = JsonQuoteClient(timeout=timeout, client=client)
        self._adapter = adapter or CoinGeckoAdapter()

    async def fetch_price(self) -> float:
        raw = await self._http.get_json(
            self._url,
            params={"ids": self._asset_id, "vs_currencies": _VS_CURRENCY},
        )
        price = self._adapter.adapt(raw, self._asset_id)
        logger.debug("CoinGecko %s price: %.4f", self._asset_id, price)
        return price

    async def aclose(self) -> None:
        await self._http.aclose()
