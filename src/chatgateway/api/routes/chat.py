"""Chat completion endpoint.

Routes ``local/<id>`` models straight to LM Studio and everything else
through OpenRouter with the web-search tool loop.
"""

import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.responses import Response

from chatgateway.api.deps import get_http_client, get_search_executor, get_usage_tracker
from chatgateway.api.ratelimit import RATE_LIMIT_CHAT, limiter
from chatgateway.api.routes.lmstudio import passthrough_stream_response
from chatgateway.api.schemas import ChatRequest
from chatgateway.config import Settings, get_settings
from chatgateway.domain.chat import (
    CompletionLoop,
    StreamingCompletionLoop,
    ToolExecutor,
    build_completion_body,
)
from chatgateway.domain.chat.backends import (
    OPENROUTER_API_KEY_HEADER,
    BackendTarget,
    build_local_body,
    resolve_backend,
    resolve_remote_api_key,
)
from chatgateway.domain.chat.request_builder import effective_max_tokens, tools_enabled_for
from chatgateway.domain.chat.streaming import SSE_HEADERS
from chatgateway.infrastructure.llm import LMStudioClient, OpenRouterClient, UsageTracker
from chatgateway.infrastructure.search import SearchExecutor
from chatgateway.shared.logging import bind_request_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.post("/chat")
@limiter.limit(RATE_LIMIT_CHAT)
async def chat(
    request: Request,
    chat_request: ChatRequest,
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    search_executor: SearchExecutor = Depends(get_search_executor),
    usage_tracker: UsageTracker = Depends(get_usage_tracker),
) -> Response:
    """Run a chat completion.

    Returns the provider's completion JSON, or an SSE stream when
    ``stream`` is set. With ``enableAutoSearch`` and a search key, capable
    models may call ``web_search`` up to three rounds before answering.
    """
    target = resolve_backend(chat_request.model)
    bind_request_context(model=chat_request.model, backend=target.kind)
    logger.info(
        "Chat request: model=%s backend=%s stream=%s messages=%d",
        chat_request.model,
        target.kind,
        chat_request.stream,
        len(chat_request.messages),
    )

    if target.is_local:
        return await _local_chat(chat_request, target, settings, http_client)

    api_key = resolve_remote_api_key(
        settings.openrouter_api_key,
        request.headers.get(OPENROUTER_API_KEY_HEADER),
    )
    completion_request = chat_request.to_completion_request()
    body = build_completion_body(completion_request)
    tools_enabled = tools_enabled_for(completion_request)
    if chat_request.enable_auto_search and not tools_enabled:
        logger.info("Auto search requested but unavailable for model %s", chat_request.model)

    client = OpenRouterClient.from_settings(http_client, api_key, settings)
    tool_executor = ToolExecutor(
        search_executor,
        search_provider=chat_request.search_provider,
        search_api_key=chat_request.search_api_key,
        search_settings=chat_request.search_settings,
        max_concurrency=settings.tool_concurrency,
    )

    if chat_request.stream:
        channel = StreamingCompletionLoop(client, tool_executor, tools_enabled).start(body)
        return StreamingResponse(
            channel.frames(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    data = await CompletionLoop(client, tool_executor, usage_tracker).run(body)
    return JSONResponse(data)


async def _local_chat(
    chat_request: ChatRequest,
    target: BackendTarget,
    settings: Settings,
    http_client: httpx.AsyncClient,
) -> Response:
    client = LMStudioClient(http_client, settings.lm_studio_endpoint)
    body = build_local_body(
        target.model,
        chat_request.wire_messages(),
        temperature=chat_request.temperature,
        max_tokens=effective_max_tokens(chat_request.max_tokens),
        top_p=chat_request.top_p,
        stream=chat_request.stream,
    )

    if chat_request.stream:
        return passthrough_stream_response(await client.open_stream(body))
    return JSONResponse(await client.chat(body))
