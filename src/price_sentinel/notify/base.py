"""Notifier protocol — the message delivery boundary."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from price_sentinel.core.models import SubscriberId


@runtime_checkable
class Notifier(Protocol):
    """Delivers a text message to one subscriber.

    Implementations raise ``DeliveryError`` when the message could not be
    delivered. Callers log the failure and carry on; nothing is retried.
    """

    async def send(self, subscriber: SubscriberId, text: str) -> None: ...
