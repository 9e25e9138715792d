"""Telegram chat layer: conversation sessions, update routing, long polling."""

from price_sentinel.bot.dispatcher import UpdateDispatcher
from price_sentinel.bot.poller import UpdatePoller
from price_sentinel.bot.session import Session, SessionState, SessionStore

__all__ = [
    "Session",
    "SessionState",
    "SessionStore",
    "UpdateDispatcher",
    "UpdatePoller",
]
