"""LM Studio client for locally served models.

LM Studio exposes an OpenAI-compatible API without authentication. Its
streaming bodies are handed to the caller unread so they can be piped to
the browser byte for byte.
"""

import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from chatgateway.observability.metrics import UPSTREAM_ERRORS
from chatgateway.shared.exceptions import (
    LocalBackendError,
    LocalBackendTimeoutError,
    LocalBackendUnavailableError,
    UpstreamError,
)
from chatgateway.shared.logging import get_logger

logger = get_logger(__name__)

LOCAL_MODEL_PREFIX = "local/"

_QUANTIZATION_SUFFIX = re.compile(r"\.(Q[0-9]_[A-Z0-9_]+)$", re.IGNORECASE)
_SIZE_TOKEN = re.compile(r"^\d+[bBmM]?$")


def format_model_name(model_id: str) -> str:
    """Turn a model file id into a human-readable name.

    ``llama-3.1-8b-instruct.Q4_K_M.gguf`` becomes
    ``Llama 3.1 8B Instruct (Q4_K_M)``.
    """
    name = re.sub(r"\.gguf$", "", model_id, flags=re.IGNORECASE)

    quant_match = _QUANTIZATION_SUFFIX.search(name)
    quant = quant_match.group(1) if quant_match else None
    if quant:
        name = name.replace(f".{quant}", "")

    words = re.sub(r"[-_]", " ", name).split(" ")
    formatted = []
    for word in words:
        if _SIZE_TOKEN.match(word) or len(word) <= 2:
            formatted.append(word.upper())
        else:
            formatted.append(word[:1].upper() + word[1:].lower())
    name = " ".join(formatted)

    if quant:
        name += f" ({quant})"
    return name


class LMStudioClient:
    """Wrapper for a local LM Studio server."""

    def __init__(self, client: httpx.AsyncClient, endpoint: str) -> None:
        self.client = client
        self.endpoint = endpoint.rstrip("/")

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except httpx.ConnectError as e:
            logger.warning("local_backend_unreachable", endpoint=self.endpoint, error=str(e))
            raise LocalBackendUnavailableError(self.endpoint) from e
        except httpx.TimeoutException as e:
            logger.warning("local_backend_timeout", endpoint=self.endpoint)
            raise LocalBackendTimeoutError() from e
        except httpx.HTTPError as e:
            logger.error("local_backend_error", endpoint=self.endpoint, error=str(e))
            raise LocalBackendError(str(e) or type(e).__name__) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_error:
            logger.error(
                "lm_studio_api_error",
                status=response.status_code,
                error=response.text[:500],
            )
            UPSTREAM_ERRORS.labels(backend="lmstudio", status_code=str(response.status_code)).inc()
            raise UpstreamError(
                f"LM Studio error: {response.status_code}",
                response.status_code,
                details={"details": response.text},
            )

    async def chat(self, body: dict[str, Any]) -> dict[str, Any]:
        """Non-streaming chat completion."""
        with self._translate_errors():
            response = await self.client.post(f"{self.endpoint}/chat/completions", json=body)
        self._raise_for_status(response)
        data: dict[str, Any] = response.json()
        return data

    async def open_stream(self, body: dict[str, Any]) -> httpx.Response:
        """Start a streaming chat completion.

        Returns the response with its body unread. The caller must close it
        (``aclose``) once the body has been forwarded.
        """
        request = self.client.build_request(
            "POST", f"{self.endpoint}/chat/completions", json=body
        )
        with self._translate_errors():
            response = await self.client.send(request, stream=True)

        if response.is_error:
            try:
                await response.aread()
            finally:
                await response.aclose()
            self._raise_for_status(response)
        return response

    async def list_models(self, timeout: float | None = 5.0) -> list[dict[str, Any]]:
        """Models loaded in LM Studio, exposed with the ``local/`` prefix."""
        with self._translate_errors():
            response = await self.client.get(f"{self.endpoint}/models", timeout=timeout)
        self._raise_for_status(response)

        models = response.json().get("data") or []
        return [
            {
                "id": f"{LOCAL_MODEL_PREFIX}{model['id']}",
                "name": format_model_name(model["id"]),
                "object": model.get("object"),
                "owned_by": model.get("owned_by") or "local",
            }
            for model in models
        ]
