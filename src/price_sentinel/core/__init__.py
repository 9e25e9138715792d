"""price_sentinel.core — Foundation types, config, and exceptions."""

from price_sentinel.core.config import (
    EngineConfig,
    LoggingConfig,
    PriceCacheConfig,
    PriceProviderName,
    PriceSourceConfig,
    SentinelConfig,
    StorageConfig,
    TelegramConfig,
    load_config,
)
from price_sentinel.core.exceptions import (
    ConfigError,
    DeliveryError,
    InputError,
    PersistenceError,
    PriceFetchError,
    PriceParseError,
    PriceSentinelError,
)
from price_sentinel.core.models import (
    AddOutcome,
    Condition,
    Direction,
    FiredCondition,
    Price,
    PriceSnapshot,
    SubscriberId,
)

__all__ = [
    # Type aliases
    "Price",
    "SubscriberId",
    # Enums
    "AddOutcome",
    "Direction",
    "PriceProviderName",
    # Models
    "Condition",
    "FiredCondition",
    "PriceSnapshot",
    # Config
    "SentinelConfig",
    "TelegramConfig",
    "PriceSourceConfig",
    "PriceCacheConfig",
    "EngineConfig",
    "StorageConfig",
    "LoggingConfig",
    "load_config",
    # Exceptions
    "PriceSentinelError",
    "ConfigError",
    "PriceFetchError",
    "PriceParseError",
    "PersistenceError",
    "DeliveryError",
    "InputError",
]
