"""Long-polling loop feeding Bot API updates to the dispatcher."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from price_sentinel.bot.dispatcher import UpdateDispatcher
from price_sentinel.core.exceptions import DeliveryError
from price_sentinel.core.models import SubscriberId
from price_sentinel.notify.telegram import TelegramClient

logger = logging.getLogger(__name__)

_ERROR_BACKOFF_SECONDS = 5.0


def _chat_of(update: dict[str, Any]) -> SubscriberId | None:
    if "callback_query" in update:
        message = update["callback_query"].get("message") or {}
    else:
        message = update.get("message") or {}
    return (message.get("chat") or {}).get("id")


class UpdatePoller:
    """Fetches updates with ``getUpdates`` and dispatches them as tasks.

    The offset advances past every received update, including ones whose
    handling raised, so a poison update is never redelivered forever.

    Each update is handled in its own task. Updates from the same chat run
    one after another in arrival order; different chats run concurrently,
    so a slow command in one chat never holds up the others.
    """

    def __init__(
        self,
        client: TelegramClient,
        dispatcher: UpdateDispatcher,
        poll_timeout: int = 30,
        error_backoff: float = _ERROR_BACKOFF_SECONDS,
    ) -> None:
        self._client = client
        self._dispatcher = dispatcher
        self._poll_timeout = poll_timeout
        self._error_backoff = error_backoff
        self._offset: int | None = None
        self._stopped = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()
        self._chat_tails: dict[SubscriberId | None, asyncio.Task] = {}

    @property
    def offset(self) -> int | None:
        return self._offset

    def stop(self) -> None:
        self._stopped.set()

    async def run(self) -> None:
        logger.info("Polling Telegram updates")
        try:
            while not self._stopped.is_set():
                try:
                    await self.poll_once()
                    continue
                except DeliveryError as e:
                    logger.warning(
                        "getUpdates failed, retrying in %.0fs: %s", self._error_backoff, e
                    )
                except Exception:
                    logger.exception(
                        "Polling cycle failed, retrying in %.0fs", self._error_backoff
                    )
                await self._backoff()
        finally:
            await self._cancel_pending()
        logger.info("Update polling stopped")

    async def poll_once(self) -> int:
        """Fetch one batch and schedule its handlers. Returns the batch size.

        Handlers keep running after this returns; ``drain()`` waits for them.
        """
        updates = await self._client.get_updates(self._offset, self._poll_timeout)
        for update in updates:
            if not isinstance(update, dict):
                logger.warning("Skipping malformed update %r", update)
                continue
            update_id = update.get("update_id")
            if isinstance(update_id, int):
                self._offset = update_id + 1
            self._schedule(update)
        return len(updates)

    async def drain(self) -> None:
        """Wait until every scheduled handler has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks)

    def _schedule(self, update: dict[str, Any]) -> None:
        chat_id = _chat_of(update)
        previous = self._chat_tails.get(chat_id)
        task = asyncio.create_task(self._handle(update, previous))
        self._tasks.add(task)
        self._chat_tails[chat_id] = task
        task.add_done_callback(lambda t, chat=chat_id: self._forget(chat, t))

    def _forget(self, chat_id: SubscriberId | None, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if self._chat_tails.get(chat_id) is task:
            del self._chat_tails[chat_id]

    async def _handle(self, update: dict[str, Any], previous: asyncio.Task | None) -> None:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            await self._dispatcher.handle_update(update)
        except Exception:
            logger.exception("Failed to handle update %s", update.get("update_id"))

    async def _backoff(self) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self._error_backoff)
        except asyncio.TimeoutError:
            pass

    async def _cancel_pending(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
