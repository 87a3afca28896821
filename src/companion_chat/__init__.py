"""Top-level package for companion-chat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import Config, ensure_config_dir, load_config
    from .exceptions import (
        CompanionChatError,
        ConcurrentRequestError,
        ConfigValidationError,
        EmptyInputError,
        PayloadTooLargeError,
        TransportError,
    )
    from .message_store import ConversationStore
    from .models import ConversationState, Message, MoodState, Role
    from .mood import MoodController
    from .notebook import NotebookStore
    from .session import CompanionSession

__all__ = [
    "CompanionChatError",
    "CompanionSession",
    "ConcurrentRequestError",
    "Config",
    "ConfigValidationError",
    "ConversationState",
    "ConversationStore",
    "EmptyInputError",
    "Message",
    "MoodController",
    "MoodState",
    "NotebookStore",
    "PayloadTooLargeError",
    "Role",
    "TransportError",
    "ensure_config_dir",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols so ``--version`` stays cheap."""
    if name == "CompanionSession":
        from .session import CompanionSession

        return CompanionSession
    if name in {"Config", "ensure_config_dir", "load_config"}:
        from .config import Config, ensure_config_dir, load_config

        return {
            "Config": Config,
            "ensure_config_dir": ensure_config_dir,
            "load_config": load_config,
        }[name]
    if name in {
        "CompanionChatError",
        "ConcurrentRequestError",
        "ConfigValidationError",
        "EmptyInputError",
        "PayloadTooLargeError",
        "TransportError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"ConversationState", "Message", "MoodState", "Role"}:
        from . import models

        return getattr(models, name)
    if name == "ConversationStore":
        from .message_store import ConversationStore

        return ConversationStore
    if name == "MoodController":
        from .mood import MoodController

        return MoodController
    if name == "NotebookStore":
        from .notebook import NotebookStore

        return NotebookStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
