"""Custom exception hierarchy for price-sentinel."""

from typing import Any


class PriceSentinelError(Exception):
    """Base exception for all price-sentinel errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(PriceSentinelError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class PriceFetchError(PriceSentinelError):
    """Failed to obtain a price from the upstream quote provider.

    Policy: retried by PriceCache up to its attempt bound, then the current
    polling tick is skipped. Never fatal.

    Context keys:
        url: str — the URL that was being fetched
        status_code: int | None — HTTP status code if applicable
        attempts: int — set by PriceCache once retries are exhausted
    """


class PriceParseError(PriceFetchError):
    """The upstream response did not contain a usable price.

    Policy: treated exactly like a transport failure (retryable).

    Context keys:
        asset: str — the asset id or symbol being parsed
        body: str — truncated response for debugging
    """


class PersistenceError(PriceSentinelError):
    """Trigger backup could not be written or read.

    Policy: log and continue. The in-memory store stays authoritative.

    Context keys:
        path: str — the backup location
        operation: str — "backup" or "restore"
    """


class DeliveryError(PriceSentinelError):
    """A message could not be delivered to a subscriber.

    Policy: log and continue. Fired conditions are removed regardless.

    Context keys:
        method: str — Bot API method that failed
        chat_id: int | str — the target subscriber
        status_code: int | None — HTTP status code if applicable
        description: str | None — transport-provided error text
    """


class InputError(PriceSentinelError):
    """User-supplied value failed validation.

    Policy: reply with a corrective prompt. Not an operational error and
    never mutates state.

    Context keys:
        value: str — the rejected input
    """
