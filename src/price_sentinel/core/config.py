"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from price_sentinel.core.exceptions import ConfigError


class PriceProviderName(StrEnum):
    """Supported upstream quote providers."""

    COINGECKO = "coingecko"
    BINANCE = "binance"


class TelegramConfig(BaseModel):
    """Telegram Bot API access configuration."""

    model_config = ConfigDict(frozen=True)

    bot_token: str | None = None
    api_base: str = "https://api.telegram.org"
    poll_timeout: int = 30
    request_timeout: float = 40.0
    rate_limit: int = 30
    dry_run: bool = False

    @field_validator("rate_limit")
    @classmethod
    def rate_limit_within_bot_api_policy(cls, v: int) -> int:
        if v < 1 or v > 30:
            raise ValueError("rate_limit must be between 1 and 30 (Bot API limit)")
        return v

    @model_validator(mode="after")
    def request_outlives_long_poll(self) -> TelegramConfig:
        if self.request_timeout <= self.poll_timeout:
            raise ValueError("request_timeout must be greater than poll_timeout")
        return self


class PriceSourceConfig(BaseModel):
    """Upstream quote provider configuration."""

    model_config = ConfigDict(frozen=True)

    provider: PriceProviderName = PriceProviderName.COINGECKO
    asset_id: str = "near"
    symbol: str = "NEARUSDT"
    asset_name: str = "NEAR"
    base_url: str | None = None
    request_timeout: float = 10.0

    @field_validator("base_url")
    @classmethod
    def base_url_is_http(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v


class PriceCacheConfig(BaseModel):
    """Freshness window and retry policy of the price cache."""

    model_config = ConfigDict(frozen=True)

    freshness_seconds: float = 60.0
    max_attempts: int = 10
    retry_delay: float = 1.0

    @field_validator("max_attempts")
    @classmethod
    def max_attempts_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be >= 1")
        return v

    @field_validator("freshness_seconds", "retry_delay")
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("value must be >= 0")
        return v


class EngineConfig(BaseModel):
    """Matching engine polling configuration."""

    model_config = ConfigDict(frozen=True)

    tick_interval: float = 1.0

    @field_validator("tick_interval")
    @classmethod
    def tick_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("tick_interval must be > 0")
        return v


class StorageConfig(BaseModel):
    """Trigger backup location."""

    model_config = ConfigDict(frozen=True)

    backup_path: str = "./data/triggers.json"


class LoggingConfig(BaseModel):
    """Root logger configuration applied by the CLI."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    @field_validator("level")
    @classmethod
    def level_known(cls, v: str) -> str:
        upper = v.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v!r}")
        return upper


class SentinelConfig(BaseModel):
    """Root configuration for the entire price-sentinel system."""

    model_config = ConfigDict(frozen=True)

    telegram: TelegramConfig = TelegramConfig()
    price_source: PriceSourceConfig = PriceSourceConfig()
    cache: PriceCacheConfig = PriceCacheConfig()
    engine: EngineConfig = EngineConfig()
    storage: StorageConfig = StorageConfig()
    logging: LoggingConfig = LoggingConfig()

    def require_bot_token(self) -> str | None:
        """Return the bot token, failing fast when delivery would be impossible."""
        if self.telegram.dry_run:
            return self.telegram.bot_token
        if not self.telegram.bot_token:
            raise ConfigError(
                "telegram.bot_token is required unless telegram.dry_run is enabled",
                context={"field": "telegram.bot_token", "value": None},
            )
        return self.telegram.bot_token


def load_config(
    config_path: str | None = None,
    env_prefix: str = "PRICE_SENTINEL_",
) -> SentinelConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (PRICE_SENTINEL_TELEGRAM__BOT_TOKEN, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        PRICE_SENTINEL_CACHE__MAX_ATTEMPTS=5  ->  cache.max_attempts = 5
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return SentinelConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("PRICE_SENTINEL_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from PRICE_SENTINEL_CONFIG not found: {env_path}",
                context={"field": "PRICE_SENTINEL_CONFIG", "value": env_path},
            )
        return p

    default = Path("price-sentinel.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        # Bot tokens look numeric up to the colon; keep secrets as strings
        cast_value = value if parts[-1] == "bot_token" else _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = dict(target.get(part) or {})
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
