"""Async HTTP client for the Gemini ``generateContent`` endpoint."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from .exceptions import (
    CompanionChatError,
    ProviderConnectionError,
    ProviderResponseError,
    TransportError,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash"


class ProviderTransport(Protocol):
    """The single suspending call the lifecycle controller depends on."""

    async def generate_content(self, payload: dict[str, Any]) -> dict[str, Any]: ...


class GeminiClient:
    """Send request bodies to Gemini and return the decoded JSON response.

    Every failure is mapped onto a ``TransportError`` subclass. There are no
    retries: recovery is always a new explicit send by the user.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def generate_content(self, payload: dict[str, Any]) -> dict[str, Any]:
        LOGGER.info(
            "provider.request.start",
            extra={
                "event": "provider.request.start",
                "model": self.model,
                "turns": len(payload.get("contents", [])),
            },
        )
        try:
            response = await self._client.post(
                self.endpoint,
                json=payload,
                headers={"x-goog-api-key": self._api_key},
            )
            response.raise_for_status()
            body = response.json()
        except Exception as exc:
            mapped = self._map_exception(exc)
            LOGGER.warning(
                "provider.request.failed",
                extra={
                    "event": "provider.request.failed",
                    "model": self.model,
                    "error_type": mapped.__class__.__name__,
                },
            )
            raise mapped from exc

        if not isinstance(body, dict):
            raise TransportError("Provider response is not a JSON object.")
        LOGGER.info(
            "provider.request.complete",
            extra={"event": "provider.request.complete", "model": self.model},
        )
        return body

    def _map_exception(self, exc: Exception) -> CompanionChatError:
        if isinstance(exc, CompanionChatError):
            return exc

        if isinstance(
            exc,
            (
                httpx.ConnectError,
                httpx.ConnectTimeout,
                httpx.ReadTimeout,
                httpx.NetworkError,
            ),
        ):
            return ProviderConnectionError(f"Unable to reach {self.base_url}.")

        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            return ProviderResponseError(
                f"Provider rejected the request for model {self.model!r} "
                f"(HTTP {status}).",
                status_code=status,
            )

        return TransportError(f"Failed to call provider at {self.base_url}: {exc}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
