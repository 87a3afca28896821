"""Slash command registry for the REPL."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging

from .exceptions import UnknownCommandError

LOGGER = logging.getLogger(__name__)

CommandHandler = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class Command:
    name: str
    handler: CommandHandler
    help_text: str


class CommandManager:
    """Map ``/name args`` lines onto async handlers.

    Handler errors are logged and re-raised so the caller decides how to show
    them; a line naming no registered command raises ``UnknownCommandError``.
    """

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register(self, name: str, handler: CommandHandler, help_text: str = "") -> None:
        """Register ``handler`` under ``name`` (the leading slash is optional)."""
        key = name.lstrip("/")
        self._commands[key] = Command(key, handler, help_text or f"Run /{key}")
        LOGGER.debug("command.registered", extra={"event": "command.registered", "command": key})

    async def execute(self, command_line: str) -> bool:
        """Run the command named on ``command_line``.

        Returns:
            True when a registered command ran, False for a line that is not a
            slash command.

        Raises:
            UnknownCommandError: if the line names an unregistered command.
        """
        if not command_line.startswith("/"):
            return False

        name, _, args = command_line[1:].partition(" ")
        command = self._commands.get(name)
        if command is None:
            LOGGER.warning(
                "command.unknown", extra={"event": "command.unknown", "command": name}
            )
            raise UnknownCommandError(f"Unknown command /{name}. Type /help for commands.")

        try:
            await command.handler(args.strip())
        except Exception as exc:
            LOGGER.error(
                "command.failed",
                extra={"event": "command.failed", "command": name, "error": str(exc)},
            )
            raise
        return True

    def get_commands(self) -> list[tuple[str, str]]:
        """Return ``(/name, help_text)`` pairs in registration order."""
        return [(f"/{command.name}", command.help_text) for command in self._commands.values()]
