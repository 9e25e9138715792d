"""Command surface shared by the chat layer and the CLI.

Every method returns the reply text for the caller to render. Validation
failures surface as ``InputError`` carrying the corrective prompt.
"""

from __future__ import annotations

import logging
import math
import sys

from price_sentinel.core.exceptions import InputError, PriceFetchError
from price_sentinel.core.models import AddOutcome, Condition, Direction, SubscriberId
from price_sentinel.prices.cache import PriceCache
from price_sentinel.triggers.store import TriggerStore

logger = logging.getLogger(__name__)

NO_TRIGGERS = "You have no triggers"

HELP_TEXT = """These commands are supported:
/help — display this text
/price — get current {asset} price
/add — add new trigger
/delete — delete selected trigger
/deleteall — delete all triggers
/list — list all my triggers"""


def parse_threshold(text: str | None) -> float:
    """Parse a user-typed price; ``,`` is accepted as the decimal separator."""
    if text is None:
        raise InputError("Enter a number:", context={"value": None})
    try:
        normalized = text.strip().replace(",", ".")
        if "_" in normalized:
            raise ValueError(normalized)
        value = float(normalized)
    except ValueError:
        raise InputError("Enter a number:", context={"value": text}) from None
    if not math.isfinite(value) or value <= 0:
        raise InputError("Enter a positive number:", context={"value": text})
    return value


def parse_direction(text: str | None) -> Direction:
    """Map a keyboard selection (``"lower"`` / ``"higher"``) to a Direction."""
    try:
        return Direction((text or "").strip().lower())
    except ValueError:
        raise InputError(
            "Choose one of the available options", context={"value": text}
        ) from None


class CommandService:
    """Implements add / delete / delete-all / list / price for one asset."""

    def __init__(
        self,
        store: TriggerStore,
        cache: PriceCache,
        *,
        asset_name: str,
    ) -> None:
        self._store = store
        self._cache = cache
        self._asset_name = asset_name

    @property
    def store(self) -> TriggerStore:
        return self._store

    def help_text(self) -> str:
        return HELP_TEXT.format(asset=self._asset_name)

    async def add_condition(
        self,
        subscriber: SubscriberId,
        direction: Direction,
        threshold: float,
    ) -> str:
        condition = Condition(direction=direction, threshold=threshold)
        outcome = await self._store.add(subscriber, condition)
        if outcome == AddOutcome.ALREADY_EXISTS:
            return f"Trigger {condition.label} already exists"
        return (
            f"You will be notified when {self._asset_name} price is "
            f"{condition.describe()}"
        )

    async def delete_condition(self, subscriber: SubscriberId, threshold: float) -> str:
        """Delete every condition at ``threshold``, whatever its direction.

        Thresholds within machine epsilon of ``threshold`` count as equal.
        """
        removed = await self._store.remove_matching(
            subscriber,
            lambda c: math.isclose(
                c.threshold, threshold, rel_tol=0.0, abs_tol=sys.float_info.epsilon
            ),
        )
        if removed:
            return f"Trigger for {threshold:.2f}$ was deleted"
        logger.info("No trigger at %.2f to delete for chat %s", threshold, subscriber)
        return f"Trigger for {threshold:.2f}$ was not found"

    async def delete_all(self, subscriber: SubscriberId) -> str:
        if await self._store.remove_all(subscriber):
            return "All triggers were deleted"
        return NO_TRIGGERS

    async def list_conditions(self, subscriber: SubscriberId) -> str:
        conditions = await self._store.list(subscriber)
        if not conditions:
            return NO_TRIGGERS
        lines = [f"Notify me when {self._asset_name} price is:"]
        lines.extend(c.describe() for c in conditions)
        return "\n".join(lines)

    async def current_price(self) -> str:
        try:
            price = await self._cache.get_price()
        except PriceFetchError as e:
            logger.warning("Price request failed: %s", e)
            return f"Failed to get {self._asset_name} price: {e}"
        return f"Current {self._asset_name} price: {price:.2f}$"
