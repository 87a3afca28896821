"""Domain exception hierarchy for the companion chat core."""

from __future__ import annotations


class CompanionChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class EmptyInputError(CompanionChatError):
    """Raised when a send or note carries no text and no attachments."""


class ConcurrentRequestError(CompanionChatError):
    """Raised when a request is started while another one is pending."""


class OrderingViolation(CompanionChatError):
    """Raised when a message would break the append-only conversation order."""


class TransportError(CompanionChatError):
    """Raised when the provider call fails or returns an unusable payload."""


class ProviderConnectionError(TransportError):
    """Raised when the provider endpoint cannot be reached."""


class ProviderResponseError(TransportError):
    """Raised when the provider answers with an HTTP error status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PayloadTooLargeError(CompanionChatError):
    """Raised when an attachment exceeds the accepted size."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Attachment too large ({size} bytes, max {limit} bytes)."
        )
        self.size = size
        self.limit = limit


class UnknownCommandError(CompanionChatError):
    """Raised when a slash command name is not registered."""


class ConfigValidationError(CompanionChatError):
    """Raised when configuration cannot be validated safely."""
