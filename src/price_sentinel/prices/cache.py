"""Time-window price cache in front of a PriceSource."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from price_sentinel.core.exceptions import PriceFetchError
from price_sentinel.core.models import PriceSnapshot
from price_sentinel.prices.provider import PriceSource

logger = logging.getLogger(__name__)

_DEFAULT_FRESHNESS_SECONDS = 60.0
_DEFAULT_MAX_ATTEMPTS = 10
_DEFAULT_RETRY_DELAY = 1.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceCache:
    """Serves the last observed price while it is fresh, refetching otherwise.

    The freshness check, the upstream fetch and the snapshot update run in a
    single critical section, so concurrent callers inside the window share
    one upstream request.

    Parameters
    ----------
    source : PriceSource
        Upstream quote provider.
    freshness_seconds : float
        Maximum age of a cached price before a new fetch is required.
    max_attempts : int
        Upstream attempts per refresh before giving up.
    retry_delay : float
        Seconds to wait between failed attempts.
    clock : Callable[[], datetime] | None
        Source of "now" (UTC). Injected by tests.
    """

    def __init__(
        self,
        source: PriceSource,
        freshness_seconds: float = _DEFAULT_FRESHNESS_SECONDS,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = _DEFAULT_RETRY_DELAY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._source = source
        self._freshness = freshness_seconds
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._clock = clock or _utcnow
        self._lock = asyncio.Lock()
        self._snapshot = PriceSnapshot.unknown()

    @property
    def snapshot(self) -> PriceSnapshot:
        return self._snapshot

    async def get_price(self) -> float:
        """Return a price no older than the freshness window.

        Raises:
            PriceFetchError: every attempt of a required refresh failed.
        """
        async with self._lock:
            if self._snapshot.is_fresh(self._clock(), self._freshness):
                return self._snapshot.price  # type: ignore[return-value]

            price = await self._fetch_with_retry()
            self._snapshot = PriceSnapshot(price=price, observed_at=self._clock())
            return price

    async def _fetch_with_retry(self) -> float:
        last_exc: PriceFetchError | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._source.fetch_price()
            except PriceFetchError as e:
                last_exc = e
                logger.warning(
                    "Price fetch failed (attempt %d/%d): %s",
                    attempt, self._max_attempts, e,
                )
                if attempt < self._max_attempts and self._retry_delay > 0:
                    await asyncio.sleep(self._retry_delay)

        raise PriceFetchError(
            f"Failed to get price after {self._max_attempts} attempts",
            context={"attempts": self._max_attempts, "last_error": str(last_exc)},
        ) from last_exc
