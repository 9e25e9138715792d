"""Per-chat conversation state for multi-turn commands."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from price_sentinel.core.models import Direction, SubscriberId


class SessionState(StrEnum):
    IDLE = "idle"
    AWAITING_TYPE = "awaiting_type"
    AWAITING_VALUE = "awaiting_value"
    AWAITING_DELETE = "awaiting_delete"


@dataclass(frozen=True)
class Session:
    state: SessionState = SessionState.IDLE
    direction: Direction | None = None


IDLE = Session()


class SessionStore:
    """In-memory sessions keyed by chat. Lost on restart, like the chat flow itself."""

    def __init__(self) -> None:
        self._sessions: dict[SubscriberId, Session] = {}

    def get(self, chat_id: SubscriberId) -> Session:
        return self._sessions.get(chat_id, IDLE)

    def set(self, chat_id: SubscriberId, session: Session) -> None:
        if session.state == SessionState.IDLE:
            self._sessions.pop(chat_id, None)
        else:
            self._sessions[chat_id] = session

    def reset(self, chat_id: SubscriberId) -> None:
        self._sessions.pop(chat_id, None)
