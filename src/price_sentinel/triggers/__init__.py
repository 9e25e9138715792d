"""Trigger lifecycle: store, persistence, and the matching engine."""

from price_sentinel.triggers.engine import MatchingEngine, evaluate, format_fire_message
from price_sentinel.triggers.persistence import TriggerBackup
from price_sentinel.triggers.store import TriggerStore

__all__ = [
    "MatchingEngine",
    "TriggerBackup",
    "TriggerStore",
    "evaluate",
    "format_fire_message",
]
