"""Backend selection for chat requests.

Model ids starting with ``local/`` are served by LM Studio; everything else
goes to OpenRouter.
"""

from dataclasses import dataclass
from typing import Any, Literal

from chatgateway.domain.chat.types import Message
from chatgateway.infrastructure.llm import LOCAL_MODEL_PREFIX
from chatgateway.shared.exceptions import MissingAPIKeyError

OPENROUTER_API_KEY_HEADER = "x-openrouter-api-key"


@dataclass(frozen=True)
class BackendTarget:
    kind: Literal["local", "remote"]
    model: str

    @property
    def is_local(self) -> bool:
        return self.kind == "local"


def is_local_model(model: str) -> bool:
    return model.startswith(LOCAL_MODEL_PREFIX)


def resolve_backend(model: str) -> BackendTarget:
    """Pick the backend for ``model``, stripping the local prefix."""
    if is_local_model(model):
        return BackendTarget(kind="local", model=model[len(LOCAL_MODEL_PREFIX) :])
    return BackendTarget(kind="remote", model=model)


def resolve_remote_api_key(
    configured_key: str | None,
    header_key: str | None,
    provider: str = "OpenRouter",
) -> str:
    """Server configuration wins over the request header.

    Raises:
        MissingAPIKeyError: Neither source provides a key
    """
    api_key = configured_key or header_key
    if not api_key:
        raise MissingAPIKeyError(provider)
    return api_key


def build_local_body(
    model: str,
    messages: list[Message],
    *,
    temperature: float,
    max_tokens: int,
    top_p: float,
    stream: bool,
) -> dict[str, Any]:
    """OpenAI-compatible body for LM Studio (no tools, no penalties)."""
    return {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "top_p": top_p,
        "stream": stream,
    }
