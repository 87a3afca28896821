"""Mapping between conversation messages and the Gemini wire format."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import TransportError
from .models import Attachment, Citation, Citations, Message, Role

LOGGER = logging.getLogger(__name__)

FALLBACK_REPLY = "I couldn't generate a response. Please try again."

WIRE_ROLES: dict[Role, str] = {Role.USER: "user", Role.ASSISTANT: "model"}

Part = dict[str, Any]
Turn = dict[str, Any]


# Provider response schema. Only the fields the core reads are declared;
# everything else is ignored.


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WebSource(_WireModel):
    uri: str | None = None
    title: str | None = None


class GroundingChunk(_WireModel):
    web: WebSource | None = None


class SearchEntryPoint(_WireModel):
    rendered_content: str | None = Field(default=None, alias="renderedContent")


class GroundingMetadata(_WireModel):
    grounding_chunks: list[GroundingChunk] = Field(
        default_factory=list, alias="groundingChunks"
    )
    search_entry_point: SearchEntryPoint | None = Field(
        default=None, alias="searchEntryPoint"
    )


class ResponsePart(_WireModel):
    text: str | None = None
    thought: bool = False


class CandidateContent(_WireModel):
    role: str | None = None
    parts: list[ResponsePart] = Field(default_factory=list)


class Candidate(_WireModel):
    content: CandidateContent | None = None
    grounding_metadata: GroundingMetadata | None = Field(
        default=None, alias="groundingMetadata"
    )
    finish_reason: str | None = Field(default=None, alias="finishReason")


class ProviderResponse(_WireModel):
    text: str | None = None
    candidates: list[Candidate] = Field(default_factory=list)

    def reply_text(self) -> str:
        """Return the response text, preferring the flattened ``text`` field."""
        if self.text:
            return self.text
        if not self.candidates or self.candidates[0].content is None:
            return ""
        return "".join(
            part.text
            for part in self.candidates[0].content.parts
            if part.text and not part.thought
        )


@dataclass(frozen=True)
class ProviderRequest:
    """A ``generateContent`` request body before JSON encoding."""

    contents: list[Turn]
    system_instruction: str = ""
    temperature: float | None = None
    enable_search: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"contents": self.contents}
        if self.system_instruction:
            payload["systemInstruction"] = {
                "parts": [{"text": self.system_instruction}]
            }
        if self.temperature is not None:
            payload["generationConfig"] = {"temperature": self.temperature}
        if self.enable_search:
            payload["tools"] = [{"googleSearch": {}}]
        payload.update(self.extra)
        return payload


def _inline_part(attachment: Attachment) -> Part:
    return {
        "inlineData": {
            "mimeType": attachment.media_type,
            "data": attachment.payload,
        }
    }


class ProtocolAdapter:
    """Pure structural mapping between domain messages and provider payloads."""

    def __init__(
        self,
        system_instruction: str = "",
        temperature: float | None = None,
        enable_search: bool = False,
    ) -> None:
        self.system_instruction = system_instruction
        self.temperature = temperature
        self.enable_search = enable_search

    @staticmethod
    def history_turn(message: Message) -> Turn:
        """Text first, then one inline part per attachment."""
        parts: list[Part] = [{"text": message.text}]
        parts.extend(_inline_part(attachment) for attachment in message.attachments)
        return {"role": WIRE_ROLES[message.role], "parts": parts}

    @staticmethod
    def outgoing_turn(text: str, attachments: Sequence[Attachment]) -> Turn:
        """Attachments first so the model reads them before the prompt."""
        parts: list[Part] = [_inline_part(attachment) for attachment in attachments]
        parts.append({"text": text})
        return {"role": WIRE_ROLES[Role.USER], "parts": parts}

    def to_request(
        self,
        history: Sequence[Message],
        new_text: str,
        new_attachments: Sequence[Attachment] = (),
    ) -> ProviderRequest:
        contents = [self.history_turn(message) for message in history]
        contents.append(self.outgoing_turn(new_text, new_attachments))
        return ProviderRequest(
            contents=contents,
            system_instruction=self.system_instruction,
            temperature=self.temperature,
            enable_search=self.enable_search,
        )

    @staticmethod
    def parse_response(payload: Any) -> ProviderResponse:
        """Validate an untrusted provider payload."""
        if isinstance(payload, ProviderResponse):
            return payload
        try:
            return ProviderResponse.model_validate(payload)
        except ValidationError as exc:
            raise TransportError(
                f"Provider returned an invalid payload: {exc}"
            ) from exc

    @staticmethod
    def extract_citations(metadata: GroundingMetadata | None) -> Citations | None:
        """Deduplicate web sources by url, keeping first-seen order."""
        if metadata is None:
            return None

        sources: dict[str, Citation] = {}
        for chunk in metadata.grounding_chunks:
            web = chunk.web
            if web is None or not web.uri or web.uri in sources:
                continue
            sources[web.uri] = Citation(url=web.uri, title=web.title or "Web Result")

        widget = None
        if metadata.search_entry_point is not None:
            widget = metadata.search_entry_point.rendered_content or None

        if not sources and widget is None:
            return None
        return Citations(sources=tuple(sources.values()), rendered_search_widget=widget)

    def from_response(self, payload: Any, **message_fields: Any) -> Message:
        """Build the assistant message for a provider response.

        ``message_fields`` is forwarded to ``Message.create`` (``created_at``).
        """
        response = self.parse_response(payload)
        text = response.reply_text()
        if not text:
            finish_reason = (
                response.candidates[0].finish_reason if response.candidates else None
            )
            LOGGER.warning(
                "protocol.response.empty",
                extra={
                    "event": "protocol.response.empty",
                    "finish_reason": finish_reason,
                },
            )
            text = FALLBACK_REPLY

        metadata = (
            response.candidates[0].grounding_metadata if response.candidates else None
        )
        return Message.create(
            Role.ASSISTANT,
            text,
            citations=self.extract_citations(metadata),
            **message_fields,
        )
