"""Rate-limited async client for the Telegram Bot API."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from price_sentinel.core.config import TelegramConfig
from price_sentinel.core.exceptions import DeliveryError
from price_sentinel.core.models import SubscriberId

logger = logging.getLogger(__name__)

_DEFAULT_API_BASE = "https://api.telegram.org"
_MAX_MESSAGE_LENGTH = 4096


class TelegramClient:
    """Minimal async Bot API client: send messages, answer callbacks, poll updates.

    Outgoing messages share one ``AsyncLimiter`` token bucket (Bot API allows
    about 30 messages per second). Long-poll requests are not rate limited.

    With ``dry_run`` enabled no request is sent for outgoing messages; they
    are logged instead and ``get_updates`` returns nothing.

    Use via ``async with TelegramClient(...) as client:``.
    """

    def __init__(
        self,
        token: str | None,
        api_base: str = _DEFAULT_API_BASE,
        timeout: float = 40.0,
        rate_limit: int = 30,
        dry_run: bool = False,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token and not dry_run:
            raise ValueError("Telegram bot token is required (or use dry_run)")
        self._dry_run = dry_run
        self._base = f"{api_base.rstrip('/')}/bot{token or 'dry-run'}"
        self._limiter = AsyncLimiter(max_rate=rate_limit, time_period=1.0)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @classmethod
    def from_config(cls, config: TelegramConfig) -> TelegramClient:
        return cls(
            token=config.bot_token,
            api_base=config.api_base,
            timeout=config.request_timeout,
            rate_limit=config.rate_limit,
            dry_run=config.dry_run,
        )

    async def __aenter__(self) -> TelegramClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        if self._owns_client:
            await self._client.aclose()

    # --- Bot API methods ---

    async def send_message(
        self,
        chat_id: SubscriberId,
        text: str,
        reply_markup: dict[str, Any] | None = None,
    ) -> None:
        """Send ``text`` to ``chat_id``, truncated to the Bot API maximum.

        Raises:
            DeliveryError: transport failure or ``ok: false`` from the API.
        """
        if len(text) > _MAX_MESSAGE_LENGTH:
            text = text[: _MAX_MESSAGE_LENGTH - 3] + "..."

        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup

        if self._dry_run:
            logger.info("[dry-run] -> chat %s: %s", chat_id, text)
            return

        await self._limiter.acquire()
        await self._call("sendMessage", payload, chat_id=chat_id)

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> None:
        """Acknowledge a button press so the client stops its spinner."""
        if self._dry_run:
            return
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        await self._call("answerCallbackQuery", payload)

    async def get_updates(self, offset: int | None, timeout: int) -> list[dict[str, Any]]:
        """Long-poll for new updates starting at ``offset``."""
        if self._dry_run:
            return []
        payload: dict[str, Any] = {
            "timeout": timeout,
            "allowed_updates": ["message", "callback_query"],
        }
        if offset is not None:
            payload["offset"] = offset
        result = await self._call("getUpdates", payload)
        return list(result or [])

    # --- Transport ---

    async def _call(
        self,
        method: str,
        payload: dict[str, Any],
        chat_id: SubscriberId | None = None,
    ) -> Any:
        url = f"{self._base}/{method}"
        context: dict[str, Any] = {"method": method, "chat_id": chat_id}

        try:
            resp = await self._client.post(url, json=payload)
        except httpx.RequestError as e:
            raise DeliveryError(
                f"Telegram {method} request failed: {e}",
                context={**context, "status_code": None, "description": str(e)},
            ) from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.status_code != 200 or not body.get("ok", False):
            description = body.get("description") or resp.text[:200]
            raise DeliveryError(
                f"Telegram {method} failed: HTTP {resp.status_code} {description}",
                context={
                    **context,
                    "status_code": resp.status_code,
                    "description": description,
                },
            )
        return body.get("result")


class TelegramNotifier:
    """``Notifier`` implementation that sends plain text through the Bot API."""

    def __init__(self, client: TelegramClient) -> None:
        self._client = client

    async def send(self, subscriber: SubscriberId, text: str) -> None:
        await self._client.send_message(subscriber, text)
