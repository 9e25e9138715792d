"""Tests for price_sentinel.notify.telegram (Bot API client and notifier)."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from price_sentinel.core.config import TelegramConfig
from price_sentinel.core.exceptions import DeliveryError
from price_sentinel.notify import Notifier, TelegramClient, TelegramNotifier

TOKEN = "123:abc"
API = f"https://api.telegram.org/bot{TOKEN}"


def _ok(result=True) -> httpx.Response:
    return httpx.Response(200, json={"ok": True, "result": result})


@pytest.fixture
async def client():
    async with TelegramClient(TOKEN) as c:
        yield c


class TestConstruction:
    def test_token_required(self):
        with pytest.raises(ValueError, match="token"):
            TelegramClient(None)

    def test_dry_run_needs_no_token(self):
        TelegramClient(None, dry_run=True)

    def test_from_config(self):
        config = TelegramConfig(bot_token=TOKEN, rate_limit=5)
        assert isinstance(TelegramClient.from_config(config), TelegramClient)


class TestSendMessage:
    @respx.mock
    async def test_posts_payload(self, client: TelegramClient):
        route = respx.post(f"{API}/sendMessage").mock(return_value=_ok({"message_id": 1}))
        await client.send_message(42, "hello")

        payload = json.loads(route.calls.last.request.content)
        assert payload == {"chat_id": 42, "text": "hello"}

    @respx.mock
    async def test_includes_reply_markup(self, client: TelegramClient):
        route = respx.post(f"{API}/sendMessage").mock(return_value=_ok())
        markup = {"inline_keyboard": [[{"text": "a", "callback_data": "a"}]]}
        await client.send_message(42, "pick", reply_markup=markup)
        assert json.loads(route.calls.last.request.content)["reply_markup"] == markup

    @respx.mock
    async def test_truncates_long_text(self, client: TelegramClient):
        route = respx.post(f"{API}/sendMessage").mock(return_value=_ok())
        await client.send_message(42, "x" * 5000)
        text = json.loads(route.calls.last.request.content)["text"]
        assert len(text) == 4096
        assert text.endswith("...")

    @respx.mock
    async def test_api_error_is_delivery_error(self, client: TelegramClient):
        respx.post(f"{API}/sendMessage").mock(
            return_value=httpx.Response(
                403, json={"ok": False, "description": "Forbidden: bot was blocked by the user"}
            )
        )
        with pytest.raises(DeliveryError, match="blocked") as exc_info:
            await client.send_message(42, "hello")
        assert exc_info.value.context["chat_id"] == 42
        assert exc_info.value.context["status_code"] == 403
        assert exc_info.value.context["method"] == "sendMessage"

    @respx.mock
    async def test_ok_false_with_200(self, client: TelegramClient):
        respx.post(f"{API}/sendMessage").mock(
            return_value=httpx.Response(200, json={"ok": False, "description": "nope"})
        )
        with pytest.raises(DeliveryError):
            await client.send_message(42, "hello")

    @respx.mock
    async def test_non_json_body(self, client: TelegramClient):
        respx.post(f"{API}/sendMessage").mock(
            return_value=httpx.Response(502, text="Bad Gateway")
        )
        with pytest.raises(DeliveryError, match="Bad Gateway"):
            await client.send_message(42, "hello")

    @respx.mock
    async def test_transport_error(self, client: TelegramClient):
        respx.post(f"{API}/sendMessage").mock(side_effect=httpx.ConnectError("down"))
        with pytest.raises(DeliveryError, match="request failed"):
            await client.send_message(42, "hello")

    @respx.mock
    async def test_dry_run_sends_nothing(self, caplog):
        route = respx.post(url__regex=r".*/sendMessage").mock(return_value=_ok())
        async with TelegramClient(None, dry_run=True) as client:
            with caplog.at_level("INFO"):
                await client.send_message(42, "hello")
        assert not route.called
        assert "[dry-run] -> chat 42: hello" in caplog.text


class TestUpdates:
    @respx.mock
    async def test_get_updates(self, client: TelegramClient):
        updates = [{"update_id": 7, "message": {"chat": {"id": 1}, "text": "/help"}}]
        route = respx.post(f"{API}/getUpdates").mock(return_value=_ok(updates))

        assert await client.get_updates(offset=7, timeout=30) == updates
        payload = json.loads(route.calls.last.request.content)
        assert payload["offset"] == 7
        assert payload["timeout"] == 30
        assert payload["allowed_updates"] == ["message", "callback_query"]

    @respx.mock
    async def test_first_poll_has_no_offset(self, client: TelegramClient):
        route = respx.post(f"{API}/getUpdates").mock(return_value=_ok([]))
        assert await client.get_updates(offset=None, timeout=0) == []
        assert "offset" not in json.loads(route.calls.last.request.content)

    async def test_dry_run_returns_nothing(self):
        async with TelegramClient(None, dry_run=True) as client:
            assert await client.get_updates(offset=None, timeout=30) == []

    @respx.mock
    async def test_answer_callback_query(self, client: TelegramClient):
        route = respx.post(f"{API}/answerCallbackQuery").mock(return_value=_ok())
        await client.answer_callback_query("cb-1")
        assert json.loads(route.calls.last.request.content) == {"callback_query_id": "cb-1"}


class TestNotifier:
    @respx.mock
    async def test_sends_text(self, client: TelegramClient):
        route = respx.post(f"{API}/sendMessage").mock(return_value=_ok())
        notifier = TelegramNotifier(client)
        await notifier.send(-100, "NEAR price is lower than 5.00$")
        assert json.loads(route.calls.last.request.content)["chat_id"] == -100

    async def test_satisfies_protocol(self, client: TelegramClient):
        assert isinstance(TelegramNotifier(client), Notifier)
