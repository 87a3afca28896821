"""Session facade wiring the conversation core together.

The presentation layer talks to ``CompanionSession`` only: it reads snapshots
(conversation state, mood, notebook) and calls the user-action methods.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .attachments import AttachmentCodec, AttachmentTray
from .config import Config, resolve_api_key
from .exceptions import CompanionChatError
from .lifecycle import RequestLifecycleController
from .message_store import ConversationStore
from .models import Attachment, ConversationState, Message, Note
from .mood import MoodController
from .notebook import JsonFileNoteStorage, NotebookStore, NoteStorage
from .protocol import ProtocolAdapter
from .provider import GeminiClient, ProviderTransport

LOGGER = logging.getLogger(__name__)


class CompanionSession:
    """One user's conversation, mood indicator and notebook."""

    def __init__(
        self,
        config: Config | None = None,
        *,
        transport: ProviderTransport | None = None,
        note_storage: NoteStorage | None = None,
        mood: MoodController | None = None,
    ) -> None:
        self.config = config or Config()
        provider = self.config.provider

        if transport is None:
            api_key = resolve_api_key(self.config)
            if not api_key:
                raise CompanionChatError(
                    f"No API key configured. Set provider.api_key or "
                    f"${provider.api_key_env}."
                )
            transport = GeminiClient(
                api_key=api_key,
                model=provider.model,
                base_url=provider.base_url,
                timeout=provider.timeout,
            )
        self.transport = transport

        self.codec = AttachmentCodec(max_bytes=self.config.attachments.max_bytes)
        self.tray = AttachmentTray()
        self.store = ConversationStore(welcome_message=self.config.app.welcome_message)
        self.mood = mood or MoodController(self.config.mood.timing())
        self.notebook = NotebookStore(
            note_storage
            or JsonFileNoteStorage(self.config.notebook.path, self.config.notebook.key)
        )
        self.controller = RequestLifecycleController(
            self.store,
            ProtocolAdapter(
                system_instruction=provider.system_instruction,
                temperature=provider.temperature,
                enable_search=provider.enable_search,
            ),
            self.transport,
            self.mood,
            self.tray,
            dispatch_delay_seconds=self.config.app.dispatch_delay_seconds,
        )

    # Read-only snapshots

    def snapshot(self) -> ConversationState:
        return self.store.snapshot()

    @property
    def notes(self) -> tuple[Note, ...]:
        return self.notebook.notes

    @property
    def staged_attachments(self) -> tuple[Attachment, ...]:
        return self.tray.items

    # Conversation actions

    def attach_file(self, path: str | Path) -> Attachment:
        """Stage a file from disk; oversized files never reach the tray."""
        attachment = self.codec.encode_file(path)
        self.tray.add(attachment)
        return attachment

    def attach_bytes(self, raw: bytes, media_type: str, file_name: str) -> Attachment:
        attachment = self.codec.encode(raw, media_type, file_name)
        self.tray.add(attachment)
        return attachment

    def remove_attachment(self, attachment_id: str) -> None:
        self.tray.remove(attachment_id)

    async def send(self, text: str = "") -> Message | None:
        return await self.controller.send(text)

    def new_conversation(self) -> None:
        """Reset to the welcome message; an in-flight reply will be discarded."""
        self.store.reset()
        self.tray.clear()
        self.mood.reset()

    # Notebook actions

    def add_note(self, content: str) -> Note:
        return self.notebook.add(content)

    def delete_note(self, note_id: str) -> None:
        self.notebook.remove(note_id)

    def save_message_to_notebook(self, message_id: str) -> Note:
        message = self.store.get(message_id)
        if message is None:
            raise KeyError(message_id)
        return self.notebook.add(message.text)

    # Lifecycle

    def start(self) -> None:
        """Start passive animations; call from inside the event loop."""
        self.mood.start()

    async def close(self) -> None:
        await self.mood.aclose()
        if isinstance(self.transport, GeminiClient):
            await self.transport.aclose()
        LOGGER.info("session.closed", extra={"event": "session.closed"})
