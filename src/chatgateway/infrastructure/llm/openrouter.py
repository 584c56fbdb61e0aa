"""OpenRouter chat-completions client.

Talks plain HTTP through the shared ``httpx.AsyncClient`` so non-streaming
payloads can be returned untouched and streaming bodies can be parsed
frame by frame.
"""

import json
from contextlib import AbstractAsyncContextManager
from typing import Any

import httpx

from chatgateway.config import Settings
from chatgateway.observability.metrics import UPSTREAM_ERRORS
from chatgateway.shared.exceptions import UpstreamError
from chatgateway.shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ERROR_MESSAGE = "OpenRouter API error"


def extract_error_message(body: str) -> str:
    """Pull ``error.message`` out of an error body, else return the raw text."""
    try:
        parsed = json.loads(body)
    except ValueError:
        return body or DEFAULT_ERROR_MESSAGE
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return DEFAULT_ERROR_MESSAGE


class OpenRouterClient:
    """Wrapper for the OpenRouter chat-completions endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        referer: str = "http://localhost:3000",
        title: str = "Chameleon AI Chat",
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.referer = referer
        self.title = title

    @classmethod
    def from_settings(
        cls, client: httpx.AsyncClient, api_key: str, settings: Settings
    ) -> "OpenRouterClient":
        return cls(
            client,
            api_key,
            base_url=settings.openrouter_base_url,
            referer=settings.public_app_url,
            title=settings.app_title,
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.referer,
            "X-Title": self.title,
        }

    async def complete(self, body: dict[str, Any]) -> dict[str, Any]:
        """Send a non-streaming completion request.

        Raises:
            UpstreamError: On a non-2xx response, carrying the upstream status
        """
        response = await self.client.post(
            self.completions_url,
            json=body,
            headers=self._headers(),
        )
        if response.is_error:
            error_text = response.text
            logger.error(
                "openrouter_api_error",
                status=response.status_code,
                error=error_text[:500],
            )
            UPSTREAM_ERRORS.labels(backend="openrouter", status_code=str(response.status_code)).inc()
            raise UpstreamError(extract_error_message(error_text), response.status_code)

        data: dict[str, Any] = response.json()
        return data

    def stream(self, body: dict[str, Any]) -> AbstractAsyncContextManager[httpx.Response]:
        """Open a streaming completion request.

        The caller checks the status and reads the body inside the context.
        """
        return self.client.stream(
            "POST",
            self.completions_url,
            json=body,
            headers=self._headers(),
        )
