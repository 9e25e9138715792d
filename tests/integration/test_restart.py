"""Integration tests: write-through backup, restart, and end-to-end firing."""

from __future__ import annotations

import json

import httpx
import respx

from price_sentinel.commands import CommandService
from price_sentinel.core.models import Condition, Direction
from price_sentinel.notify import TelegramClient, TelegramNotifier
from price_sentinel.prices import CoinGeckoPriceSource, PriceCache
from price_sentinel.triggers import MatchingEngine, TriggerBackup, TriggerStore

COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price"
SEND_URL = "https://api.telegram.org/bot1:token/sendMessage"


class TestRestart:
    async def test_restart_restores_every_mutation(self, backup_path, cache):
        store = TriggerStore.restore(TriggerBackup(backup_path))
        commands = CommandService(store, cache, asset_name="NEAR")
        await commands.add_condition(1, Direction.LOWER, 3.0)
        await commands.add_condition(1, Direction.HIGHER, 9.0)
        await commands.add_condition("group", Direction.HIGHER, 12.5)
        await commands.delete_condition(1, 9.0)

        restarted = TriggerStore.restore(TriggerBackup(backup_path))
        assert await restarted.snapshot() == {
            1: [Condition.lower(3.0)],
            "group": [Condition.higher(12.5)],
        }

    async def test_missing_backup_starts_empty(self, backup_path, cache):
        store = TriggerStore.restore(TriggerBackup(backup_path))
        await store.add("C", Condition.lower(1.0))
        backup_path.unlink()

        restarted = TriggerStore.restore(TriggerBackup(backup_path))
        assert restarted.is_empty()

    async def test_fired_conditions_do_not_come_back(self, backup_path, cache, notifier):
        store = TriggerStore.restore(TriggerBackup(backup_path))
        await store.add("A", Condition.lower(5.0))
        await store.add("A", Condition.higher(6.0))

        engine = MatchingEngine(store, cache, notifier, asset_name="NEAR")
        await engine.run_once()

        restarted = TriggerStore.restore(TriggerBackup(backup_path))
        assert await restarted.snapshot() == {"A": [Condition.higher(6.0)]}


class TestEndToEnd:
    @respx.mock
    async def test_quote_to_telegram(self, backup_path):
        respx.get(COINGECKO_URL).mock(
            return_value=httpx.Response(200, json={"near": {"usd": 4.5}})
        )
        send = respx.post(SEND_URL).mock(
            return_value=httpx.Response(200, json={"ok": True, "result": {}})
        )

        store = TriggerStore.restore(TriggerBackup(backup_path))
        await store.add(42, Condition.lower(5.0))
        await store.add(42, Condition.lower(4.0))

        source = CoinGeckoPriceSource("near")
        async with TelegramClient("1:token") as client:
            engine = MatchingEngine(
                store,
                PriceCache(source, retry_delay=0),
                TelegramNotifier(client),
                asset_name="NEAR",
            )
            fired = await engine.run_once()
        await source.aclose()

        assert [hit.condition for hit in fired] == [Condition.lower(5.0)]
        payload = json.loads(send.calls.last.request.content)
        assert payload == {
            "chat_id": 42,
            "text": "NEAR price is lower than 5.00$\nCurrent price: 4.50$",
        }
        assert json.loads(backup_path.read_text())["subscribers"] == [
            {"id": 42, "conditions": [{"direction": "lower", "threshold": 4.0}]}
        ]

    @respx.mock
    async def test_blocked_chat_still_retires(self, backup_path):
        respx.get(COINGECKO_URL).mock(
            return_value=httpx.Response(200, json={"near": {"usd": 4.5}})
        )
        respx.post(SEND_URL).mock(
            return_value=httpx.Response(
                403, json={"ok": False, "description": "Forbidden: bot was blocked by the user"}
            )
        )
        store = TriggerStore.restore(TriggerBackup(backup_path))
        await store.add(42, Condition.lower(5.0))

        source = CoinGeckoPriceSource("near")
        async with TelegramClient("1:token") as client:
            engine = MatchingEngine(
                store, PriceCache(source, retry_delay=0), TelegramNotifier(client), asset_name="NEAR"
            )
            await engine.run_once()
        await source.aclose()

        assert store.is_empty()
