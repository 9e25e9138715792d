"""Price source and adapter protocols — the quote-provider boundary.

Architecture
------------
    Quote API → PriceSource (HTTP) → PriceAdapter (parse) → float → PriceCache

- **PriceSource** is what the cache depends on: one async call that returns
  the current price of the tracked asset or raises a typed error.

- **PriceAdapter** turns a raw JSON body into a positive float. Each upstream
  ships its own adapter, so the response shape never leaks past the source.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class PriceAdapter(Protocol):
    """Extracts the current price from a raw upstream response.

    Parameters
    ----------
    raw_data : Any
        The decoded JSON body returned by the quote API.
    asset : str
        The asset id or symbol the response belongs to.

    Returns
    -------
    float
        A strictly positive price.

    Raises
    ------
    PriceParseError
        The body is well-formed JSON but holds no usable price.
    """

    def adapt(self, raw_data: Any, asset: str) -> float: ...


@runtime_checkable
class PriceSource(Protocol):
    """Fetches the current price of the single tracked asset."""

    async def fetch_price(self) -> float:
        """Return the current price.

        Raises
        ------
        PriceFetchError
            Transport or HTTP failure.
        PriceParseError
            The response could not be turned into a price.
        """
        ...

    async def aclose(self) -> None:
        """Release any HTTP resources held by the source."""
        ...
