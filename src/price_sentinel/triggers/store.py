"""Concurrent in-memory store of per-subscriber conditions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence

from price_sentinel.core.exceptions import PersistenceError
from price_sentinel.core.models import (
    AddOutcome,
    Condition,
    FiredCondition,
    SubscriberId,
)
from price_sentinel.triggers.persistence import TriggerBackup, normalize

logger = logging.getLogger(__name__)


class TriggerStore:
    """Process-wide map from subscriber to its ordered set of conditions.

    Every operation runs under one ``asyncio.Lock``. Mutations write the full
    store through to the backup before releasing the lock; a failed backup is
    logged and the mutation stands.

    Invariants:
    - a subscriber never holds two equal conditions;
    - each subscriber's conditions are sorted by ``Condition.sort_key``;
    - a subscriber key is never present with an empty list.

    Parameters
    ----------
    backup : TriggerBackup | None
        Write-through target. ``None`` keeps the store memory-only.
    initial : Mapping[SubscriberId, Sequence[Condition]] | None
        Restored state to start from.
    """

    def __init__(
        self,
        backup: TriggerBackup | None = None,
        initial: Mapping[SubscriberId, Sequence[Condition]] | None = None,
    ) -> None:
        self._backup = backup
        self._lock = asyncio.Lock()
        self._triggers: dict[SubscriberId, list[Condition]] = {}
        for subscriber, conditions in (initial or {}).items():
            normalized = normalize(conditions)
            if normalized:
                self._triggers[subscriber] = normalized

    @classmethod
    def restore(cls, backup: TriggerBackup) -> TriggerStore:
        """Build a store from the backup file (empty if missing or corrupt)."""
        return cls(backup=backup, initial=backup.restore())

    def __len__(self) -> int:
        return len(self._triggers)

    def is_empty(self) -> bool:
        return not self._triggers

    def condition_count(self) -> int:
        return sum(len(c) for c in self._triggers.values())

    # --- Mutations ---

    async def add(self, subscriber: SubscriberId, condition: Condition) -> AddOutcome:
        """Insert ``condition`` unless an equal one is already registered."""
        async with self._lock:
            conditions = self._triggers.get(subscriber, [])
            if condition in conditions:
                logger.info(
                    "Trigger %s already exists for chat %s", condition.label, subscriber
                )
                return AddOutcome.ALREADY_EXISTS

            conditions = sorted([*conditions, condition], key=lambda c: c.sort_key)
            self._triggers[subscriber] = conditions
            self._write_through()

        logger.info("Added %s trigger for chat %s", condition.label, subscriber)
        return AddOutcome.INSERTED

    async def remove_matching(
        self,
        subscriber: SubscriberId,
        predicate: Callable[[Condition], bool],
    ) -> bool:
        """Remove every condition of ``subscriber`` for which ``predicate`` holds."""
        async with self._lock:
            removed = self._remove_locked(subscriber, predicate)
            if removed:
                self._write_through()
        return removed > 0

    async def remove_all(self, subscriber: SubscriberId) -> bool:
        """Drop every condition of ``subscriber``. Returns whether any existed."""
        async with self._lock:
            existed = self._triggers.pop(subscriber, None) is not None
            if existed:
                self._write_through()

        if existed:
            logger.info("Deleted all triggers for chat %s", subscriber)
        return existed

    async def remove_fired(self, fired: Iterable[FiredCondition]) -> int:
        """Remove each fired (subscriber, condition) pair with a single backup.

        Conditions are matched exactly by direction and threshold. Pairs that
        no longer exist (deleted concurrently by their owner) are skipped.
        """
        async with self._lock:
            removed = 0
            for hit in fired:
                removed += self._remove_locked(
                    hit.subscriber, lambda c, target=hit.condition: c == target
                )
            if removed:
                self._write_through()
        return removed

    # --- Reads ---

    async def list(self, subscriber: SubscriberId) -> list[Condition]:
        """Return a copy of ``subscriber``'s conditions in ascending order."""
        async with self._lock:
            return list(self._triggers.get(subscriber, ()))

    async def snapshot_for_iteration(self) -> dict[SubscriberId, tuple[Condition, ...]]:
        """Immutable view of every subscriber's conditions for one evaluation pass."""
        async with self._lock:
            return {
                subscriber: tuple(conditions)
                for subscriber, conditions in self._triggers.items()
            }

    async def snapshot(self) -> dict[SubscriberId, list[Condition]]:
        async with self._lock:
            return {
                subscriber: list(conditions)
                for subscriber, conditions in self._triggers.items()
            }

    # --- Internals (caller holds the lock) ---

    def _remove_locked(
        self,
        subscriber: SubscriberId,
        predicate: Callable[[Condition], bool],
    ) -> int:
        conditions = self._triggers.get(subscriber)
        if not conditions:
            return 0

        kept: list[Condition] = []
        for condition in conditions:
            if predicate(condition):
                logger.info(
                    "Removing %s from triggers for chat %s", condition.label, subscriber
                )
            else:
                kept.append(condition)

        removed = len(conditions) - len(kept)
        if not removed:
            return 0
        if kept:
            self._triggers[subscriber] = kept
        else:
            logger.info("Removing chat %s from triggers", subscriber)
            del self._triggers[subscriber]
        return removed

    def _write_through(self) -> None:
        if self._backup is None:
            return
        try:
            self._backup.backup(self._triggers)
        except PersistenceError as e:
            logger.error("Failed to backup triggers: %s", e)
