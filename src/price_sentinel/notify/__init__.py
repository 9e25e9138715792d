"""Message delivery: notifier protocol and the Telegram Bot API client."""

from price_sentinel.notify.base import Notifier
from price_sentinel.notify.telegram import TelegramClient, TelegramNotifier

__all__ = [
    "Notifier",
    "TelegramClient",
    "TelegramNotifier",
]
