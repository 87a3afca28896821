"""Append-only conversation log and request lifecycle flags."""

from __future__ import annotations

from datetime import datetime
import logging

from .exceptions import ConcurrentRequestError, OrderingViolation
from .models import ConversationState, Message, Role, utc_now
from .prompts import WELCOME_MESSAGE

LOGGER = logging.getLogger(__name__)


class ConversationStore:
    """Own the ordered message log plus the pending/error flags.

    Messages are only ever appended; the single way to drop history is
    ``reset()``, which also bumps ``generation`` so in-flight requests from the
    previous conversation can be recognised as stale.
    """

    def __init__(self, welcome_message: str = WELCOME_MESSAGE) -> None:
        self.welcome_message = welcome_message
        self._messages: list[Message] = []
        self._ids: set[str] = set()
        self._pending = False
        self._last_error: str | None = None
        self._generation = 0
        self._seed()

    def _seed(self) -> None:
        seed = Message.create(Role.ASSISTANT, self.welcome_message)
        self._messages = [seed]
        self._ids = {seed.id}

    @property
    def messages(self) -> tuple[Message, ...]:
        """Return messages in insertion order."""
        return tuple(self._messages)

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def generation(self) -> int:
        """Counter distinguishing conversation epochs across resets."""
        return self._generation

    def get(self, message_id: str) -> Message | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def timestamp(self) -> datetime:
        """Return a clock reading no earlier than the newest message."""
        now = utc_now()
        if self._messages and self._messages[-1].created_at > now:
            return self._messages[-1].created_at
        return now

    def append(self, message: Message) -> None:
        """Append ``message`` as the newest event of the log."""
        if message.id in self._ids:
            raise OrderingViolation(f"Message {message.id!r} is already in the log.")
        if self._messages and message.created_at < self._messages[-1].created_at:
            raise OrderingViolation(
                f"Message {message.id!r} is older than the newest message."
            )
        self._messages.append(message)
        self._ids.add(message.id)
        LOGGER.debug(
            "conversation.append",
            extra={
                "event": "conversation.append",
                "role": message.role.value,
                "attachments": len(message.attachments),
                "count": len(self._messages),
            },
        )

    def set_pending(self, pending: bool) -> None:
        if pending and self._pending:
            raise ConcurrentRequestError("A request is already pending.")
        self._pending = pending

    def set_error(self, message: str | None) -> None:
        self._last_error = message

    def reset(self) -> None:
        """Start a new conversation holding only the welcome message."""
        self._seed()
        self._pending = False
        self._last_error = None
        self._generation += 1
        LOGGER.info(
            "conversation.reset",
            extra={"event": "conversation.reset", "generation": self._generation},
        )

    def snapshot(self) -> ConversationState:
        return ConversationState(
            messages=tuple(self._messages),
            pending=self._pending,
            last_error=self._last_error,
            generation=self._generation,
        )
