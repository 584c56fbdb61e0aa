"""Unit tests for direct search API access."""

import json

import httpx
import pytest

from chatgateway.infrastructure.search import SearchProxy, SearchSettings
from chatgateway.shared.exceptions import UpstreamError


class TestSearchProxy:
    @pytest.mark.asyncio
    async def test_returns_raw_json(self, mock_http_client):
        raw = {"results": [{"title": "A", "content": "x", "url": "https://a", "score": 0.9}]}
        sent: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, json=raw)

        proxy = SearchProxy(mock_http_client(handler))

        data = await proxy.search("tavily", "q", "tvly-key", SearchSettings())

        assert data == raw
        assert sent[0].headers["Content-Type"] == "application/json"
        assert json.loads(sent[0].content)["api_key"] == "tvly-key"

    @pytest.mark.asyncio
    async def test_url_override(self, mock_http_client):
        sent: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, json={})

        proxy = SearchProxy(mock_http_client(handler))

        await proxy.search(
            "serper", "q", "k", SearchSettings(), url="https://google.serper.dev/videos"
        )

        assert str(sent[0].url) == "https://google.serper.dev/videos"
        assert sent[0].headers["X-API-KEY"] == "k"

    @pytest.mark.asyncio
    async def test_error_keeps_provider_status(self, mock_http_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"message": "Too many requests"})

        proxy = SearchProxy(mock_http_client(handler))

        with pytest.raises(UpstreamError) as exc_info:
            await proxy.search("serper", "q", "k", SearchSettings())

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Too many requests"

    def test_unknown_provider(self, mock_http_client):
        proxy = SearchProxy(mock_http_client(lambda request: httpx.Response(200)))

        with pytest.raises(KeyError):
            proxy.build("bing", "q", "k", SearchSettings())
