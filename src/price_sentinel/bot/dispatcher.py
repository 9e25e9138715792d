"""Routes Telegram updates to the command surface.

Thin I/O adapter. All condition logic lives in ``CommandService``; this
module only tracks where each chat is in a multi-turn flow and renders
replies and inline keyboards.
"""

from __future__ import annotations

import logging
from typing import Any

from price_sentinel.bot.session import IDLE, Session, SessionState, SessionStore
from price_sentinel.commands import NO_TRIGGERS, CommandService, parse_direction, parse_threshold
from price_sentinel.core.exceptions import DeliveryError, InputError
from price_sentinel.core.models import Direction, SubscriberId
from price_sentinel.notify.telegram import TelegramClient

logger = logging.getLogger(__name__)

_DELETE_PREFIX = "delete:"
_CHOOSE_OPTION = "Choose one of the available options"
_UNKNOWN_COMMAND = "Unknown command, see /help"

_TYPE_KEYBOARD = {
    "inline_keyboard": [
        [{"text": "Notify me if the price is lower than ...", "callback_data": Direction.LOWER.value}],
        [{"text": "Notify me if the price is higher than ...", "callback_data": Direction.HIGHER.value}],
    ]
}


class UpdateDispatcher:
    """Handles one Bot API update at a time.

    Parameters
    ----------
    client : TelegramClient
        Used for replies and callback acknowledgements.
    commands : CommandService
        Core command implementation.
    sessions : SessionStore | None
        Conversation state; a fresh store is created if omitted.
    """

    def __init__(
        self,
        client: TelegramClient,
        commands: CommandService,
        sessions: SessionStore | None = None,
    ) -> None:
        self._client = client
        self._commands = commands
        self._sessions = sessions or SessionStore()

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def handle_update(self, update: dict[str, Any]) -> None:
        if "callback_query" in update:
            await self._handle_callback(update["callback_query"])
        elif "message" in update:
            await self._handle_message(update["message"])
        else:
            logger.debug("Ignoring update %s", update.get("update_id"))

    # --- Messages ---

    async def _handle_message(self, message: dict[str, Any]) -> None:
        chat_id = message.get("chat", {}).get("id")
        text = (message.get("text") or "").strip()
        if chat_id is None or not text:
            return

        if text.startswith("/"):
            self._sessions.reset(chat_id)
            command, _, args = text.partition(" ")
            await self._handle_command(chat_id, command.split("@", 1)[0].lower(), args.split())
            return

        session = self._sessions.get(chat_id)
        if session.state == SessionState.AWAITING_VALUE and session.direction is not None:
            await self._receive_threshold(chat_id, session.direction, text)
        elif session.state in (SessionState.AWAITING_TYPE, SessionState.AWAITING_DELETE):
            await self._reply(chat_id, _CHOOSE_OPTION)
        else:
            logger.debug("Ignoring free text from chat %s", chat_id)

    async def _handle_command(self, chat_id: SubscriberId, command: str, args: list[str]) -> None:
        logger.info("Receiving %s command from chat %s", command, chat_id)

        if command in ("/help", "/start"):
            await self._reply(chat_id, self._commands.help_text())
        elif command == "/price":
            await self._reply(chat_id, await self._commands.current_price())
        elif command == "/add":
            await self._start_add(chat_id, args)
        elif command == "/delete":
            await self._start_delete(chat_id, args)
        elif command == "/deleteall":
            await self._reply(chat_id, await self._commands.delete_all(chat_id))
        elif command == "/list":
            await self._reply(chat_id, await self._commands.list_conditions(chat_id))
        else:
            logger.warning("Unknown command %r from chat %s", command, chat_id)
            await self._reply(chat_id, _UNKNOWN_COMMAND)

    async def _start_add(self, chat_id: SubscriberId, args: list[str]) -> None:
        # One-shot form: /add lower 4.5
        if len(args) == 2:
            try:
                direction = parse_direction(args[0])
                threshold = parse_threshold(args[1])
            except InputError as e:
                await self._reply(chat_id, str(e))
                return
            await self._reply(
                chat_id, await self._commands.add_condition(chat_id, direction, threshold)
            )
            return

        await self._reply(chat_id, "Choose the trigger type:", _TYPE_KEYBOARD)
        self._sessions.set(chat_id, Session(state=SessionState.AWAITING_TYPE))

    async def _start_delete(self, chat_id: SubscriberId, args: list[str]) -> None:
        # One-shot form: /delete 4.5
        if len(args) == 1:
            try:
                threshold = parse_threshold(args[0])
            except InputError as e:
                await self._reply(chat_id, str(e))
                return
            await self._reply(chat_id, await self._commands.delete_condition(chat_id, threshold))
            return

        conditions = await self._commands.store.list(chat_id)
        if not conditions:
            await self._reply(chat_id, NO_TRIGGERS)
            return

        keyboard = {
            "inline_keyboard": [
                [{"text": c.describe(), "callback_data": f"{_DELETE_PREFIX}{c.threshold!r}"}]
                for c in conditions
            ]
        }
        await self._reply(chat_id, "Choose the trigger to delete:", keyboard)
        self._sessions.set(chat_id, Session(state=SessionState.AWAITING_DELETE))

    async def _receive_threshold(
        self, chat_id: SubscriberId, direction: Direction, text: str
    ) -> None:
        try:
            threshold = parse_threshold(text)
        except InputError as e:
            await self._reply(chat_id, str(e))
            return

        self._sessions.reset(chat_id)
        await self._reply(
            chat_id, await self._commands.add_condition(chat_id, direction, threshold)
        )

    # --- Callback queries ---

    async def _handle_callback(self, query: dict[str, Any]) -> None:
        chat_id = query.get("message", {}).get("chat", {}).get("id")
        data = query.get("data") or ""
        if query.get("id"):
            try:
                await self._client.answer_callback_query(query["id"])
            except DeliveryError as e:
                logger.error("Failed to answer callback query: %s", e)
        if chat_id is None:
            return

        session = self._sessions.get(chat_id)

        if session.state == SessionState.AWAITING_TYPE:
            try:
                direction = parse_direction(data)
            except InputError as e:
                await self._reply(chat_id, str(e))
                return
            self._sessions.set(
                chat_id, Session(state=SessionState.AWAITING_VALUE, direction=direction)
            )
            await self._reply(chat_id, "Enter the price:")
        elif session.state == SessionState.AWAITING_DELETE and data.startswith(_DELETE_PREFIX):
            try:
                threshold = parse_threshold(data[len(_DELETE_PREFIX):])
            except InputError:
                await self._reply(chat_id, _CHOOSE_OPTION)
                return
            self._sessions.set(chat_id, IDLE)
            await self._reply(chat_id, await self._commands.delete_condition(chat_id, threshold))
        else:
            logger.warning("Unknown callback query data %r from chat %s", data, chat_id)
            await self._reply(chat_id, _UNKNOWN_COMMAND)

    # --- Replies ---

    async def _reply(
        self,
        chat_id: SubscriberId,
        text: str,
        reply_markup: dict[str, Any] | None = None,
    ) -> None:
        try:
            await self._client.send_message(chat_id, text, reply_markup=reply_markup)
        except DeliveryError as e:
            logger.error("Failed to reply to chat %s: %s", chat_id, e)
