"""Tests for price_sentinel.triggers.engine (MatchingEngine)."""

from __future__ import annotations

import asyncio

import pytest

from price_sentinel.core.models import Condition, FiredCondition
from price_sentinel.prices.cache import PriceCache
from price_sentinel.triggers.engine import MatchingEngine, evaluate, format_fire_message
from price_sentinel.triggers.store import TriggerStore


@pytest.fixture
def engine(store, cache, notifier) -> MatchingEngine:
    return MatchingEngine(store, cache, notifier, asset_name="NEAR", tick_interval=0.01)


class TestEvaluate:
    def test_collects_all_hits(self):
        snapshot = {
            1: (Condition.lower(5.0), Condition.higher(10.0)),
            2: (Condition.lower(4.0), Condition.higher(4.5)),
        }
        fired = evaluate(snapshot, 4.5)
        assert {(f.subscriber, f.condition) for f in fired} == {
            (1, Condition.lower(5.0)),
            (2, Condition.higher(4.5)),
        }
        assert all(f.price == 4.5 for f in fired)

    def test_boundary_fires_both_directions(self):
        snapshot = {1: (Condition.lower(5.0), Condition.higher(5.0))}
        assert len(evaluate(snapshot, 5.0)) == 2

    def test_nothing_fires(self):
        assert evaluate({1: (Condition.lower(1.0), Condition.higher(9.0))}, 5.0) == []

    def test_empty_snapshot(self):
        assert evaluate({}, 5.0) == []


class TestFireMessage:
    def test_lower(self):
        hit = FiredCondition(subscriber=1, condition=Condition.lower(5.0), price=4.5)
        assert format_fire_message("NEAR", hit) == (
            "NEAR price is lower than 5.00$\nCurrent price: 4.50$"
        )

    def test_higher(self):
        hit = FiredCondition(subscriber=1, condition=Condition.higher(10.0), price=10.25)
        assert format_fire_message("BTC", hit) == (
            "BTC price is higher than 10.00$\nCurrent price: 10.25$"
        )


class TestRunOnce:
    async def test_fires_notifies_and_retires(self, engine, store: TriggerStore, notifier):
        await store.add("A", Condition.lower(5.0))

        fired = await engine.run_once()

        assert [(f.subscriber, f.condition) for f in fired] == [("A", Condition.lower(5.0))]
        assert notifier.sent == [
            ("A", "NEAR price is lower than 5.00$\nCurrent price: 4.50$")
        ]
        assert await store.list("A") == []
        assert "A" not in await store.snapshot()

    async def test_unmatched_conditions_stay(self, engine, store: TriggerStore, notifier):
        await store.add(1, Condition.lower(4.0))
        await store.add(1, Condition.higher(5.0))
        assert await engine.run_once() == []
        assert notifier.sent == []
        assert len(await store.list(1)) == 2

    async def test_fires_each_condition_once_per_pass(self, engine, store, notifier):
        await store.add(1, Condition.lower(100.0))
        await store.add(1, Condition.lower(50.0))
        await store.add(1, Condition.higher(0.01))

        fired = await engine.run_once()
        assert len(fired) == 3
        assert len(notifier.sent) == 3
        assert store.is_empty()

        assert await engine.run_once() == []
        assert len(notifier.sent) == 3

    async def test_empty_store_skips_fetch(self, engine, price_source):
        assert await engine.run_once() == []
        assert price_source.calls == 0

    async def test_price_failure_skips_tick(
        self, store, notifier, make_source, clock, fetch_error, caplog
    ):
        cache = PriceCache(make_source(fetch_error), max_attempts=2, retry_delay=0, clock=clock)
        engine = MatchingEngine(store, cache, notifier, asset_name="NEAR")
        await store.add(1, Condition.lower(5.0))

        assert await engine.run_once() == []
        assert notifier.sent == []
        assert await store.list(1) == [Condition.lower(5.0)]
        assert "Skipping tick" in caplog.text

    async def test_delivery_failure_still_retires(
        self, store, cache, make_notifier, caplog
    ):
        notifier = make_notifier(fail_for={1})
        engine = MatchingEngine(store, cache, notifier, asset_name="NEAR")
        await store.add(1, Condition.lower(5.0))
        await store.add(2, Condition.lower(5.0))

        fired = await engine.run_once()

        assert len(fired) == 2
        assert notifier.sent == [(2, "NEAR price is lower than 5.00$\nCurrent price: 4.50$")]
        assert store.is_empty()
        assert "Failed to notify chat 1" in caplog.text

    async def test_only_fired_condition_removed(self, engine, store):
        await store.add(1, Condition.lower(5.0))
        await store.add(1, Condition.higher(5.0))
        await engine.run_once()
        assert await store.list(1) == [Condition.higher(5.0)]


class TestRunLoop:
    async def test_stop_ends_loop(self, engine, store, notifier):
        await store.add(1, Condition.lower(5.0))
        task = asyncio.create_task(engine.run())
        for _ in range(100):
            if notifier.sent:
                break
            await asyncio.sleep(0.01)
        engine.stop()
        await asyncio.wait_for(task, timeout=1)
        assert len(notifier.sent) == 1

    async def test_unexpected_error_does_not_end_loop(self, engine, store, monkeypatch, caplog):
        calls = 0
        original = engine.run_once

        async def flaky_run_once():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return await original()

        monkeypatch.setattr(engine, "run_once", flaky_run_once)
        task = asyncio.create_task(engine.run())
        for _ in range(100):
            if calls >= 3:
                break
            await asyncio.sleep(0.01)
        engine.stop()
        await asyncio.wait_for(task, timeout=1)

        assert calls >= 3
        assert "Matching cycle failed" in caplog.text
