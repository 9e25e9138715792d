"""JSON file backup of the trigger store.

The backup is a single document rewritten after every store mutation and
read once at startup:

    {"version": 1,
     "subscribers": [{"id": 42, "conditions": [{"direction": "lower", "threshold": 5.0}]}]}

Subscribers are stored as a list of records rather than an object so that
integer chat ids survive the round trip as integers.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from price_sentinel.core.exceptions import PersistenceError
from price_sentinel.core.models import Condition, SubscriberId

logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


class SubscriberRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: SubscriberId
    conditions: list[Condition]


class BackupDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int = _FORMAT_VERSION
    subscribers: list[SubscriberRecord] = []


def normalize(conditions: Sequence[Condition]) -> list[Condition]:
    """Drop duplicates and sort ascending by threshold."""
    return sorted(set(conditions), key=lambda c: c.sort_key)


class TriggerBackup:
    """Reads and writes the trigger store snapshot at a fixed path.

    Parameters
    ----------
    path : str | Path
        Backup file location. Parent directories are created on first write.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def backup(self, snapshot: Mapping[SubscriberId, Sequence[Condition]]) -> None:
        """Overwrite the backup with ``snapshot``.

        The document is written to a temporary file in the same directory and
        moved into place, so a crash mid-write leaves the previous backup intact.

        Raises:
            PersistenceError: the file could not be written.
        """
        document = BackupDocument(
            subscribers=[
                SubscriberRecord(id=subscriber, conditions=list(conditions))
                for subscriber, conditions in snapshot.items()
            ]
        )
        payload = document.model_dump_json(indent=2)

        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(
                f"Failed to write trigger backup: {e}",
                context={"path": str(self._path), "operation": "backup"},
            ) from e

        logger.debug(
            "Backed up %d subscribers to %s", len(document.subscribers), self._path
        )

    def restore(self) -> dict[SubscriberId, list[Condition]]:
        """Load the backup, or return an empty store if it is missing or corrupt."""
        if not self._path.exists():
            logger.warning("No trigger backup at %s, starting empty", self._path)
            return {}

        try:
            document = BackupDocument.model_validate_json(
                self._path.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError, ValueError) as e:
            logger.error(
                "Failed to restore triggers from %s, starting empty: %s", self._path, e
            )
            return {}

        if document.version != _FORMAT_VERSION:
            logger.error(
                "Unsupported trigger backup version %d in %s, starting empty",
                document.version, self._path,
            )
            return {}

        restored: dict[SubscriberId, list[Condition]] = {}
        for record in document.subscribers:
            conditions = normalize([*restored.get(record.id, []), *record.conditions])
            if conditions:
                restored[record.id] = conditions

        logger.info(
            "Restored %d triggers for %d subscribers from %s",
            sum(len(c) for c in restored.values()), len(restored), self._path,
        )
        return restored
