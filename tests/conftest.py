"""Shared pytest fixtures for price-sentinel."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from price_sentinel.core.exceptions import DeliveryError, PriceFetchError
from price_sentinel.prices.cache import PriceCache
from price_sentinel.triggers.persistence import TriggerBackup
from price_sentinel.triggers.store import TriggerStore


class FakePriceSource:
    """Scripted PriceSource: yields queued results, then repeats the last price."""

    def __init__(self, *results: float | Exception) -> None:
        self.results = list(results)
        self.calls = 0
        self.closed = False

    async def fetch_price(self) -> float:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True


class FakeNotifier:
    """Records sent messages; fails for chats listed in ``fail_for``."""

    def __init__(self, fail_for: set | None = None) -> None:
        self.sent: list[tuple[int | str, str]] = []
        self.fail_for = fail_for or set()

    async def send(self, subscriber, text: str) -> None:
        if subscriber in self.fail_for:
            raise DeliveryError("chat not found", context={"chat_id": subscriber})
        self.sent.append((subscriber, text))


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backup_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "triggers.json"


@pytest.fixture
def backup(backup_path: Path) -> TriggerBackup:
    return TriggerBackup(backup_path)


@pytest.fixture
def store(backup: TriggerBackup) -> TriggerStore:
    return TriggerStore(backup=backup)


@pytest.fixture
def price_source() -> FakePriceSource:
    return FakePriceSource(4.50)


@pytest.fixture
def cache(price_source: FakePriceSource, clock: FakeClock) -> PriceCache:
    return PriceCache(price_source, retry_delay=0, clock=clock)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def fetch_error() -> PriceFetchError:
    return PriceFetchError("connection refused", context={"url": "https://example.com"})


@pytest.fixture
def make_source():
    """Factory for scripted price sources: ``make_source(4.5, PriceFetchError(...))``."""
    return FakePriceSource


@pytest.fixture
def make_notifier():
    return FakeNotifier


class FakeBotClient:
    """Stands in for TelegramClient: records replies, serves queued update batches."""

    def __init__(self, batches: list | None = None) -> None:
        self.messages: list[tuple[int | str, str, dict | None]] = []
        self.answered: list[str] = []
        self.batches = list(batches or [])
        self.offsets: list[int | None] = []
        self.fail_replies = False

    async def send_message(self, chat_id, text: str, reply_markup: dict | None = None) -> None:
        if self.fail_replies:
            raise DeliveryError("Forbidden", context={"chat_id": chat_id})
        self.messages.append((chat_id, text, reply_markup))

    async def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        self.answered.append(callback_query_id)

    async def get_updates(self, offset, timeout: int) -> list[dict]:
        self.offsets.append(offset)
        if not self.batches:
            await asyncio.sleep(0.001)
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch

    @property
    def texts(self) -> list[str]:
        return [text for _, text, _ in self.messages]


@pytest.fixture
def bot_client() -> FakeBotClient:
    return FakeBotClient()
