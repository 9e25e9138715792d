"""Matching engine — the polling loop that fires and retires conditions.

Each cycle moves through four states:

    Idle-wait → Fetch-price → Evaluate → Apply-removals → Idle-wait

Fetch-price failures skip the cycle. Evaluate works on an immutable snapshot
of the store and never mutates it. Apply-removals notifies each owner and
then retires every fired condition with a single backup write.

Known limitation: a fired condition is retired even when its notification
could not be delivered. There is no redelivery queue.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence

from price_sentinel.core.exceptions import DeliveryError, PriceFetchError
from price_sentinel.core.models import Condition, FiredCondition, Price, SubscriberId
from price_sentinel.notify.base import Notifier
from price_sentinel.prices.cache import PriceCache
from price_sentinel.triggers.store import TriggerStore

logger = logging.getLogger(__name__)


def evaluate(
    snapshot: Mapping[SubscriberId, Sequence[Condition]],
    price: Price,
) -> list[FiredCondition]:
    """Return every (subscriber, condition) pair satisfied by ``price``."""
    return [
        FiredCondition(subscriber=subscriber, condition=condition, price=price)
        for subscriber, conditions in snapshot.items()
        for condition in conditions
        if condition.matches(price)
    ]


def format_fire_message(asset_name: str, hit: FiredCondition) -> str:
    return (
        f"{asset_name} price is {hit.condition.describe()}\n"
        f"Current price: {hit.price:.2f}$"
    )


class MatchingEngine:
    """Evaluates all registered conditions against the cached price.

    Parameters
    ----------
    store : TriggerStore
        Shared condition store.
    cache : PriceCache
        Shared price cache.
    notifier : Notifier
        Delivery channel for fire messages.
    asset_name : str
        Display name used in messages, e.g. ``"NEAR"``.
    tick_interval : float
        Seconds to wait between cycles.
    """

    def __init__(
        self,
        store: TriggerStore,
        cache: PriceCache,
        notifier: Notifier,
        *,
        asset_name: str,
        tick_interval: float = 1.0,
    ) -> None:
        self._store = store
        self._cache = cache
        self._notifier = notifier
        self._asset_name = asset_name
        self._tick_interval = tick_interval
        self._stopped = asyncio.Event()

    async def run(self) -> None:
        """Run cycles until ``stop()`` is called."""
        logger.info(
            "Matching engine started (tick every %.2fs)", self._tick_interval
        )
        while not self._stopped.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("Matching cycle failed, continuing")

            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._tick_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Matching engine stopped")

    def stop(self) -> None:
        self._stopped.set()

    async def run_once(self) -> list[FiredCondition]:
        """Execute one Fetch-price → Evaluate → Apply-removals cycle.

        Returns the fired pairs that were retired during this cycle.
        """
        if self._store.is_empty():
            return []

        try:
            price = await self._cache.get_price()
        except PriceFetchError as e:
            logger.warning("Skipping tick, price unavailable: %s", e)
            return []

        snapshot = await self._store.snapshot_for_iteration()
        fired = evaluate(snapshot, price)
        if not fired:
            return []

        for hit in fired:
            logger.info(
                "%s price %.2f satisfies %s for chat %s",
                self._asset_name, price, hit.condition.label, hit.subscriber,
            )
            await self._deliver(hit)

        removed = await self._store.remove_fired(fired)
        logger.info("Retired %d fired triggers", removed)
        return fired

    async def _deliver(self, hit: FiredCondition) -> None:
        try:
            await self._notifier.send(
                hit.subscriber, format_fire_message(self._asset_name, hit)
            )
        except DeliveryError as e:
            logger.error(
                "Failed to notify chat %s about %s: %s",
                hit.subscriber, hit.condition.label, e,
            )
