"""Shared httpx plumbing for JSON quote endpoints."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from price_sentinel.core.exceptions import PriceFetchError, PriceParseError

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; price-sentinel/0.1)"


class JsonQuoteClient:
    """Owns an ``httpx.AsyncClient`` and turns failures into typed errors.

    Parameters
    ----------
    timeout : float
        Per-request timeout in seconds.
    client : httpx.AsyncClient | None
        Inject a preconfigured client (useful for testing). When given, the
        caller keeps ownership and ``aclose`` leaves it open.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": _USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
        )

    async def get_json(self, url: str, params: dict[str, str]) -> Any:
        """GET ``url`` and return the decoded JSON body."""
        try:
            resp = await self._client.get(url, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PriceFetchError(
                f"HTTP {e.response.status_code} from {url}",
                context={
                    "url": url,
                    "status_code": e.response.status_code,
                    "body": e.response.text[:200],
                },
            ) from e
        except httpx.RequestError as e:
            raise PriceFetchError(
                f"Request to {url} failed: {e}",
                context={"url": url, "status_code": None},
            ) from e

        try:
            return resp.json()
        except ValueError as e:
            raise PriceParseError(
                f"Response from {url} is not JSON",
                context={"url": url, "body": resp.text[:200]},
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def coerce_price(value: Any, asset: str) -> float:
    """Convert a JSON scalar into a strictly positive float."""
    if isinstance(value, bool):
        value = None
    try:
        price = float(value)
    except (TypeError, ValueError) as e:
        raise PriceParseError(
            f"Price for {asset} is not numeric: {value!r}",
            context={"asset": asset, "body": repr(value)[:200]},
        ) from e
    if not price > 0 or price == float("inf"):
        raise PriceParseError(
            f"Price for {asset} must be positive and finite, got {price}",
            context={"asset": asset, "body": repr(value)[:200]},
        )
    return price
