"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

# --- Type Aliases ---

SubscriberId = int | str
Price = float

# --- Enumerations ---


class Direction(StrEnum):
    """Comparison direction of a condition."""

    LOWER = "lower"
    HIGHER = "higher"


class AddOutcome(StrEnum):
    """Result of adding a condition to a subscriber's set."""

    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


_DIRECTION_ORDER: dict[Direction, int] = {Direction.LOWER: 0, Direction.HIGHER: 1}


# --- Condition ---


class Condition(BaseModel):
    """A price threshold with a comparison direction.

    ``Lower(t)`` fires when the price is at or below ``t``; ``Higher(t)``
    fires when the price is at or above ``t``. Two conditions are equal when
    both direction and threshold match.
    """

    model_config = ConfigDict(frozen=True)

    direction: Direction
    threshold: Price

    @field_validator("threshold")
    @classmethod
    def threshold_positive_finite(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError(f"threshold must be a positive finite number, got {v}")
        return v

    @classmethod
    def lower(cls, threshold: Price) -> Condition:
        return cls(direction=Direction.LOWER, threshold=threshold)

    @classmethod
    def higher(cls, threshold: Price) -> Condition:
        return cls(direction=Direction.HIGHER, threshold=threshold)

    def matches(self, price: Price) -> bool:
        """Return True if ``price`` satisfies this condition (boundary inclusive)."""
        if self.direction == Direction.LOWER:
            return price <= self.threshold
        return price >= self.threshold

    @property
    def sort_key(self) -> tuple[float, int]:
        """Ascending by threshold, LOWER before HIGHER on ties."""
        return (self.threshold, _DIRECTION_ORDER[self.direction])

    @property
    def label(self) -> str:
        return f"{self.direction.value.capitalize()}({self.threshold:.2f})"

    def describe(self) -> str:
        return f"{self.direction.value} than {self.threshold:.2f}$"


# --- Price state ---


class PriceSnapshot(BaseModel):
    """Last successfully observed price and when it was observed."""

    model_config = ConfigDict(frozen=True)

    price: Price | None = None
    observed_at: datetime | None = None

    @classmethod
    def unknown(cls) -> PriceSnapshot:
        return cls()

    def is_fresh(self, now: datetime, window_seconds: float) -> bool:
        if self.price is None or self.observed_at is None:
            return False
        return (now - self.observed_at).total_seconds() < window_seconds


class FiredCondition(BaseModel):
    """A condition satisfied by the price seen during one evaluation pass."""

    model_config = ConfigDict(frozen=True)

    subscriber: SubscriberId
    condition: Condition
    price: Price
