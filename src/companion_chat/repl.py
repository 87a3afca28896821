"""Line-oriented terminal front end for a ``CompanionSession``."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from pathlib import Path

from .commands import CommandManager
from .downloads import extract_code_blocks, save_code_block
from .exceptions import CompanionChatError
from .models import Message, MoodState, Role
from .prompts import SUGGESTIONS
from .session import CompanionSession

LOGGER = logging.getLogger(__name__)

ReadLine = Callable[[str], Awaitable[str]]
Write = Callable[[str], None]

MOOD_TRIGGERS = {
    "asleep": MoodState.ASLEEP,
    "startled": MoodState.STARTLED,
    "winking": MoodState.WINKING,
}


def parse_position(
    args: str, count: int, label: str, default: int | None = None
) -> int:
    """Turn a 1-based position typed by the user into a list index.

    Raises:
        ValueError: if ``args`` is not a whole number between 1 and ``count``.
    """
    position = default if not args and default is not None else int(args)
    if count == 0:
        raise ValueError(f"There is no {label} to choose yet.")
    if not 1 <= position <= count:
        raise ValueError(f"Choose a {label} between 1 and {count}.")
    return position - 1


async def _read_stdin(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


def format_message(message: Message) -> str:
    speaker = "You" if message.role is Role.USER else "Assistant"
    lines = [f"[{speaker}] {message.text}"]
    for attachment in message.attachments:
        lines.append(f"  (attached {attachment.file_name}, {attachment.media_type})")
    if message.citations is not None:
        for index, source in enumerate(message.citations.sources, start=1):
            lines.append(f"  [{index}] {source.title} - {source.domain} ({source.url})")
    return "\n".join(lines)


class CompanionRepl:
    """Read user lines, dispatch slash commands, and send everything else."""

    def __init__(
        self,
        session: CompanionSession,
        *,
        read_line: ReadLine = _read_stdin,
        write: Write = print,
        download_dir: str | Path | None = None,
    ) -> None:
        self.session = session
        self.download_dir = Path(
            download_dir if download_dir is not None else session.config.app.download_dir
        ).expanduser()
        self._read_line = read_line
        self._write = write
        self._running = False
        self.commands = CommandManager()
        self._register_commands()

    def _register_commands(self) -> None:
        register = self.commands.register
        register("attach", self._cmd_attach, "Stage a file: /attach <path>")
        register("detach", self._cmd_detach, "Unstage a file: /detach <n>")
        register("new", self._cmd_new, "Start a new conversation")
        register("note", self._cmd_note, "Add a note: /note <text>")
        register("save", self._cmd_save, "Save a reply to the notebook: /save [n]")
        register("notes", self._cmd_notes, "List notebook entries")
        register("delnote", self._cmd_delnote, "Delete a note: /delnote <n>")
        register("mood", self._cmd_mood, "Set mood: /mood asleep|startled|winking|idle")
        register("suggest", self._cmd_suggest, "List or send a suggestion: /suggest [n]")
        register("download", self._cmd_download, "Save a code block: /download [n]")
        register("help", self._cmd_help, "Show commands")
        register("quit", self._cmd_quit, "Exit")

    async def run(self) -> None:
        self._running = True
        self.session.start()
        self._write(format_message(self.session.snapshot().messages[0]))
        try:
            while self._running:
                try:
                    line = await self._read_line("> ")
                except EOFError:
                    break
                await self.handle_line(line)
        finally:
            await self.session.close()
            LOGGER.info("repl.exit", extra={"event": "repl.exit"})

    async def handle_line(self, line: str) -> None:
        text = line.strip()
        if text.startswith("/") and len(text) > 1:
            try:
                await self.commands.execute(text)
            except (CompanionChatError, OSError, ValueError, LookupError) as exc:
                self._write(f"! {exc}")
            return
        if not text and not self.session.staged_attachments:
            return
        await self._send(text)

    async def _send(self, text: str) -> None:
        reply = await self.session.send(text)
        state = self.session.snapshot()
        if reply is not None:
            self._write(format_message(reply))
        elif state.last_error:
            self._write(f"! {state.last_error}")

    def _replies(self) -> list[Message]:
        """Assistant replies after the welcome message, oldest first."""
        return [
            message
            for message in self.session.snapshot().messages[1:]
            if message.role is Role.ASSISTANT
        ]

    # Commands

    async def _cmd_attach(self, args: str) -> None:
        attachment = self.session.attach_file(args)
        count = len(self.session.staged_attachments)
        self._write(f"File attached: {attachment.file_name} ({count} total)")

    async def _cmd_detach(self, args: str) -> None:
        staged = self.session.staged_attachments
        attachment = staged[parse_position(args, len(staged), "attachment")]
        self.session.remove_attachment(attachment.id)
        self._write(f"Removed {attachment.file_name}")

    async def _cmd_new(self, args: str) -> None:
        self.session.new_conversation()
        self._write(format_message(self.session.snapshot().messages[0]))

    async def _cmd_note(self, args: str) -> None:
        self.session.add_note(args)
        self._write(f"Saved note ({len(self.session.notes)} total)")

    async def _cmd_save(self, args: str) -> None:
        # n counts back from the newest reply.
        replies = self._replies()
        index = parse_position(args, len(replies), "reply", default=1)
        self.session.save_message_to_notebook(replies[-1 - index].id)
        self._write("Saved reply to notebook")

    async def _cmd_notes(self, args: str) -> None:
        notes = self.session.notes
        if not notes:
            self._write("No notes yet")
            return
        for index, note in enumerate(notes, start=1):
            stamp = note.created_at.strftime("%b %d %H:%M")
            self._write(f"{index}. [{stamp}] {note.content}")

    async def _cmd_delnote(self, args: str) -> None:
        notes = self.session.notes
        note = notes[parse_position(args, len(notes), "note")]
        self.session.delete_note(note.id)
        self._write("Note deleted")

    async def _cmd_mood(self, args: str) -> None:
        name = args.lower()
        if name == "idle":
            self.session.mood.reset()
        else:
            self.session.mood.trigger(MOOD_TRIGGERS[name])
        self._write(f"Mood: {self.session.mood.state.value}")

    async def _cmd_suggest(self, args: str) -> None:
        if not args:
            for index, suggestion in enumerate(SUGGESTIONS, start=1):
                self._write(f"{index}. {suggestion.title} - {suggestion.subtitle}")
            return
        suggestion = SUGGESTIONS[parse_position(args, len(SUGGESTIONS), "suggestion")]
        await self._send(suggestion.prompt)

    async def _cmd_download(self, args: str) -> None:
        """Save the n-th code block of the newest reply that has code."""
        blocks = []
        for reply in reversed(self._replies()):
            blocks = extract_code_blocks(reply.text)
            if blocks:
                break
        block = blocks[parse_position(args, len(blocks), "code block", default=1)]
        path = save_code_block(block, self.download_dir)
        self._write(f"Saved {path}")

    async def _cmd_help(self, args: str) -> None:
        for command, help_text in self.commands.get_commands():
            self._write(f"{command:<10} {help_text}")

    async def _cmd_quit(self, args: str) -> None:
        self._running = False
