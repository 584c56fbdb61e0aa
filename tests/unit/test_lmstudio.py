"""Unit tests for the LM Studio client."""

import json

import httpx
import pytest

from chatgateway.infrastructure.llm.lmstudio import LMStudioClient, format_model_name
from chatgateway.shared.exceptions import (
    LocalBackendError,
    LocalBackendTimeoutError,
    LocalBackendUnavailableError,
    UpstreamError,
)

ENDPOINT = "http://localhost:1234/v1"


class TestFormatModelName:
    @pytest.mark.parametrize(
        ("model_id", "expected"),
        [
            ("llama-3.1-8b-instruct.Q4_K_M.gguf", "Llama 3.1 8B Instruct (Q4_K_M)"),
            ("mistral-7b-instruct", "Mistral 7B Instruct"),
            ("qwen2_vl", "Qwen2 VL"),
        ],
    )
    def test_humanized(self, model_id, expected):
        assert format_model_name(model_id) == expected


class TestLMStudioClient:
    @pytest.mark.asyncio
    async def test_chat_posts_without_auth(self, mock_http_client):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})

        client = LMStudioClient(mock_http_client(handler), ENDPOINT + "/")

        data = await client.chat({"model": "llama-3", "messages": []})

        assert data == {"choices": [{"message": {"content": "hi"}}]}
        assert str(seen[0].url) == f"{ENDPOINT}/chat/completions"
        assert "authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_connection_refused_is_unavailable(self, mock_http_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        client = LMStudioClient(mock_http_client(handler), ENDPOINT)

        with pytest.raises(LocalBackendUnavailableError) as exc_info:
            await client.chat({"model": "llama-3", "messages": []})

        assert exc_info.value.status_code == 503
        payload = exc_info.value.to_payload()
        assert payload["error"] == "LM Studio not running"
        assert ENDPOINT in payload["details"]
        assert payload["suggestion"] == "Start LM Studio and load a model, then try again."

    @pytest.mark.asyncio
    async def test_other_transport_error_is_generic(self, mock_http_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.RemoteProtocolError("peer closed connection", request=request)

        client = LMStudioClient(mock_http_client(handler), ENDPOINT)

        with pytest.raises(LocalBackendError) as exc_info:
            await client.chat({})

        assert not isinstance(exc_info.value, LocalBackendUnavailableError)
        assert exc_info.value.status_code == 500
        assert exc_info.value.to_payload() == {
            "error": "Failed to connect to LM Studio",
            "details": "peer closed connection",
        }

    @pytest.mark.asyncio
    async def test_timeout(self, mock_http_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = LMStudioClient(mock_http_client(handler), ENDPOINT)

        with pytest.raises(LocalBackendTimeoutError) as exc_info:
            await client.list_models()

        assert exc_info.value.status_code == 504
        assert exc_info.value.message == "LM Studio not responding"

    @pytest.mark.asyncio
    async def test_error_status_passes_through(self, mock_http_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="model not loaded")

        client = LMStudioClient(mock_http_client(handler), ENDPOINT)

        with pytest.raises(UpstreamError) as exc_info:
            await client.open_stream({"model": "missing", "stream": True})

        assert exc_info.value.status_code == 404
        assert exc_info.value.to_payload() == {
            "error": "LM Studio error: 404",
            "details": "model not loaded",
        }

    @pytest.mark.asyncio
    async def test_open_stream_leaves_body_unread(self, mock_http_client):
        raw = b'data: {"choices":[{"delta":{"content":"hi"}}]}\n\ndata: [DONE]\n\n'

        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["stream"] is True
            return httpx.Response(200, content=raw)

        client = LMStudioClient(mock_http_client(handler), ENDPOINT)

        response = await client.open_stream({"model": "llama-3", "stream": True})
        try:
            assert b"".join([chunk async for chunk in response.aiter_raw()]) == raw
        finally:
            await response.aclose()

    @pytest.mark.asyncio
    async def test_list_models(self, mock_http_client):
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == f"{ENDPOINT}/models"
            return httpx.Response(
                200,
                json={
                    "data": [
                        {"id": "llama-3.1-8b-instruct.Q4_K_M.gguf", "object": "model"},
                        {"id": "qwen3-8b", "object": "model", "owned_by": "organization_owner"},
                    ]
                },
            )

        client = LMStudioClient(mock_http_client(handler), ENDPOINT)

        models = await client.list_models(timeout=5.0)

        assert models == [
            {
                "id": "local/llama-3.1-8b-instruct.Q4_K_M.gguf",
                "name": "Llama 3.1 8B Instruct (Q4_K_M)",
                "object": "model",
                "owned_by": "local",
            },
            {
                "id": "local/qwen3-8b",
                "name": "Qwen3 8B",
                "object": "model",
                "owned_by": "organization_owner",
            },
        ]
