"""Immutable domain types shared across the conversation core."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from urllib.parse import urlparse
from uuid import uuid4


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(UTC)


class Role(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"


class MoodState(str, Enum):
    """Visible affective state derived from the request lifecycle."""

    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ASLEEP = "asleep"
    STARTLED = "startled"
    WINKING = "winking"


@dataclass(frozen=True)
class Attachment:
    """A user file in transport-safe form (base64 payload)."""

    id: str
    media_type: str
    file_name: str
    payload: str

    @property
    def is_image(self) -> bool:
        return self.media_type.startswith("image/")

    @property
    def subtype_label(self) -> str:
        """Short upper-case label such as ``PDF`` for non-image previews."""
        _, _, subtype = self.media_type.partition("/")
        return (subtype or "file").upper()


@dataclass(frozen=True)
class Citation:
    """A web source the provider used to ground its answer."""

    url: str
    title: str

    @property
    def domain(self) -> str:
        try:
            hostname = urlparse(self.url).hostname
        except ValueError:
            hostname = None
        if not hostname:
            return "External Source"
        return hostname.removeprefix("www.")


@dataclass(frozen=True)
class Citations:
    """Grounding metadata attached to an assistant message."""

    sources: tuple[Citation, ...] = ()
    rendered_search_widget: str | None = None


@dataclass(frozen=True)
class Message:
    """A single entry of the conversation log."""

    id: str
    role: Role
    text: str
    attachments: tuple[Attachment, ...] = ()
    citations: Citations | None = None
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        role: Role,
        text: str,
        *,
        attachments: tuple[Attachment, ...] | list[Attachment] = (),
        citations: Citations | None = None,
        created_at: datetime | None = None,
    ) -> Message:
        return cls(
            id=new_id(),
            role=role,
            text=text,
            attachments=tuple(attachments),
            citations=citations,
            created_at=created_at or utc_now(),
        )


@dataclass(frozen=True)
class ConversationState:
    """Read-only snapshot handed to the presentation layer."""

    messages: tuple[Message, ...]
    pending: bool
    last_error: str | None
    generation: int


@dataclass(frozen=True)
class Note:
    """A user-curated notebook snippet."""

    id: str
    content: str
    created_at: datetime

    def to_record(self) -> dict[str, str]:
        return {
            "id": self.id,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
        }
