"""Orchestration of a single send, from validation to mood transition."""

from __future__ import annotations

import asyncio
import logging

from .attachments import AttachmentTray
from .exceptions import ConcurrentRequestError, EmptyInputError, TransportError
from .message_store import ConversationStore
from .models import Message, Role
from .mood import MoodController
from .protocol import ProtocolAdapter
from .provider import ProviderTransport

LOGGER = logging.getLogger(__name__)

SEND_FAILED_MESSAGE = "Failed to send message. Please try again."


class RequestLifecycleController:
    """Drive one request end to end.

    The store is always mutated before the matching mood transition, so an
    observer never sees a mood that does not match the conversation state.
    Requests are tagged with the store generation at dispatch; a response that
    resolves after ``ConversationStore.reset()`` is discarded.
    """

    def __init__(
        self,
        store: ConversationStore,
        adapter: ProtocolAdapter,
        transport: ProviderTransport,
        mood: MoodController,
        tray: AttachmentTray | None = None,
        *,
        dispatch_delay_seconds: float = 0.0,
    ) -> None:
        self.store = store
        self.adapter = adapter
        self.transport = transport
        self.mood = mood
        self.tray = tray if tray is not None else AttachmentTray()
        self.dispatch_delay_seconds = dispatch_delay_seconds

    def validate(self, text: str) -> None:
        """Raise if a send with ``text`` and the staged attachments is not allowed."""
        if not text.strip() and len(self.tray) == 0:
            raise EmptyInputError("Nothing to send.")
        if self.store.pending:
            raise ConcurrentRequestError("A request is already pending.")

    async def send(self, text: str = "") -> Message | None:
        """Send ``text`` (stripped) with the staged attachments.

        Returns the assistant message, or ``None`` when the send was rejected,
        failed, or resolved after the conversation was reset. A cancelled send
        runs the failure path before the cancellation propagates.
        """
        text = text.strip()
        try:
            self.validate(text)
        except (EmptyInputError, ConcurrentRequestError) as exc:
            LOGGER.debug(
                "send.rejected",
                extra={"event": "send.rejected", "reason": type(exc).__name__},
            )
            return None

        history = self.store.messages
        attachments = self.tray.items
        user_message = Message.create(
            Role.USER,
            text,
            attachments=attachments,
            created_at=self.store.timestamp(),
        )
        generation = self.store.generation

        self.store.append(user_message)
        self.store.set_error(None)
        self.store.set_pending(True)
        self.tray.clear()
        self.mood.request_started()
        LOGGER.info(
            "send.dispatched",
            extra={
                "event": "send.dispatched",
                "generation": generation,
                "history": len(history),
                "attachments": len(attachments),
            },
        )

        try:
            if self.dispatch_delay_seconds > 0:
                await asyncio.sleep(self.dispatch_delay_seconds)
            request = self.adapter.to_request(history, text, attachments)
            payload = await self.transport.generate_content(request.to_payload())
            if self._is_stale(generation):
                return None
            reply = self.adapter.from_response(
                payload, created_at=self.store.timestamp()
            )
        except TransportError as exc:
            self._fail(generation, exc)
            return None
        except (Exception, asyncio.CancelledError) as exc:
            self._fail(generation, exc)
            raise

        self.store.append(reply)
        self.store.set_pending(False)
        self.mood.request_succeeded()
        LOGGER.info(
            "send.succeeded",
            extra={
                "event": "send.succeeded",
                "generation": generation,
                "citations": len(reply.citations.sources) if reply.citations else 0,
            },
        )
        return reply

    def _is_stale(self, generation: int) -> bool:
        if self.store.generation == generation:
            return False
        LOGGER.info(
            "send.stale_response",
            extra={
                "event": "send.stale_response",
                "generation": generation,
                "current_generation": self.store.generation,
            },
        )
        return True

    def _fail(self, generation: int, exc: BaseException) -> None:
        if self._is_stale(generation):
            return
        self.store.set_pending(False)
        self.store.set_error(SEND_FAILED_MESSAGE)
        self.mood.request_failed()
        LOGGER.warning(
            "send.failed",
            extra={
                "event": "send.failed",
                "generation": generation,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
