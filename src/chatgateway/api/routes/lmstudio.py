"""LM Studio proxy endpoints.

Lets the browser reach a local LM Studio server without CORS trouble:
model listing plus a direct chat-completions proxy.
"""

import logging

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.responses import Response

from chatgateway.api.deps import get_http_client
from chatgateway.api.schemas import LMStudioChatRequest
from chatgateway.config import Settings, get_settings
from chatgateway.domain.chat.backends import build_local_body, resolve_backend
from chatgateway.domain.chat.streaming import SSE_HEADERS
from chatgateway.infrastructure.llm import LMStudioClient
from chatgateway.shared.logging import bind_request_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lmstudio", tags=["lmstudio"])


def passthrough_stream_response(upstream: httpx.Response) -> StreamingResponse:
    """Pipe an upstream SSE body to the client without touching the bytes."""
    return StreamingResponse(
        upstream.aiter_raw(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(upstream.aclose),
    )


@router.get("/models")
async def list_models(
    endpoint: str | None = Query(default=None, description="LM Studio base URL"),
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> dict:
    """List models loaded in LM Studio as ``local/<id>`` entries."""
    client = LMStudioClient(http_client, endpoint or settings.lm_studio_endpoint)
    logger.info("Fetching LM Studio models from %s", client.endpoint)

    models = await client.list_models(timeout=settings.lm_studio_models_timeout_seconds)

    logger.info("Found %d LM Studio models", len(models))
    return {"data": models}


@router.post("/chat")
async def lmstudio_chat(
    chat_request: LMStudioChatRequest,
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Forward a chat completion to LM Studio, streaming by default."""
    client = LMStudioClient(http_client, chat_request.endpoint or settings.lm_studio_endpoint)
    target = resolve_backend(chat_request.model)
    bind_request_context(model=chat_request.model, backend="local")
    body = build_local_body(
        target.model,
        [message.to_wire() for message in chat_request.messages],
        temperature=chat_request.temperature,
        max_tokens=chat_request.max_tokens,
        top_p=chat_request.top_p,
        stream=chat_request.stream,
    )
    logger.info(
        "LM Studio chat: model=%s stream=%s messages=%d",
        target.model,
        chat_request.stream,
        len(chat_request.messages),
    )

    if chat_request.stream:
        return passthrough_stream_response(await client.open_stream(body))
    return JSONResponse(await client.chat(body))
