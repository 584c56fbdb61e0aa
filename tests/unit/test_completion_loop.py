"""Unit tests for the non-streaming tool-calling loop."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from chatgateway.domain.chat.completion_loop import MAX_TOOL_ITERATIONS, CompletionLoop
from chatgateway.domain.chat.tool_executor import ToolExecutor
from chatgateway.infrastructure.llm import OpenRouterClient, UsageTracker
from chatgateway.infrastructure.search import SearchExecutor
from chatgateway.shared.exceptions import ToolIterationLimitError, UpstreamError

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

BODY = {
    "model": "openai/gpt-4o",
    "messages": [{"role": "user", "content": "What's the weather today?"}],
    "stream": False,
}


def _final_answer(content: str = "4") -> dict:
    return {
        "id": "gen-final",
        "model": "openai/gpt-4o",
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": content},
            }
        ],
        "usage": {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15},
    }


def _tool_call_answer(*queries: str) -> dict:
    return {
        "id": "gen-tools",
        "model": "openai/gpt-4o",
        "choices": [
            {
                "index": 0,
                "finish_reason": "tool_calls",
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": f"call_{i}",
                            "type": "function",
                            "function": {
                                "name": "web_search",
                                "arguments": json.dumps({"query": query}),
                            },
                        }
                        for i, query in enumerate(queries)
                    ],
                },
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def _client(http_client: httpx.AsyncClient) -> OpenRouterClient:
    return OpenRouterClient(http_client, "sk-or-test")


@pytest.fixture
def search_executor():
    executor = MagicMock(spec=SearchExecutor)
    executor.execute = AsyncMock(return_value="## Web Search Results for \"weather today\"")
    return executor


class TestCompletionLoop:
    @pytest.mark.asyncio
    async def test_direct_answer_returned_unchanged(self, mock_http_client, search_executor):
        payload = {**_final_answer(), "provider": "OpenAI", "extra": {"nested": [1, 2]}}
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=payload)

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        result = await loop.run(BODY)

        assert result == payload
        assert len(requests) == 1
        assert requests[0].headers["Authorization"] == "Bearer sk-or-test"
        assert requests[0].headers["X-Title"] == "Chameleon AI Chat"
        assert json.loads(requests[0].content) == BODY
        search_executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_round_trip(self, mock_http_client, search_executor):
        sent_bodies: list[dict] = []
        responses = [_tool_call_answer("weather today"), _final_answer("Sunny.")]

        def handler(request: httpx.Request) -> httpx.Response:
            sent_bodies.append(json.loads(request.content))
            return httpx.Response(200, json=responses[len(sent_bodies) - 1])

        loop = CompletionLoop(
            _client(mock_http_client(handler)),
            ToolExecutor(search_executor, search_api_key="tvly-key"),
        )

        result = await loop.run(BODY)

        assert result == _final_answer("Sunny.")
        assert len(sent_bodies) == 2

        followup = sent_bodies[1]["messages"]
        assert followup[0] == BODY["messages"][0]
        assert followup[1] == _tool_call_answer("weather today")["choices"][0]["message"]
        assert followup[2] == {
            "role": "tool",
            "tool_call_id": "call_0",
            "content": '## Web Search Results for "weather today"',
            "name": "web_search",
        }
        search_executor.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_original_body_not_mutated(self, mock_http_client, search_executor):
        responses = [_tool_call_answer("q"), _final_answer()]
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json=responses[calls - 1])

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        await loop.run(BODY)

        assert len(BODY["messages"]) == 1

    @pytest.mark.asyncio
    async def test_tool_results_follow_call_order(self, mock_http_client, search_executor):
        sent_bodies: list[dict] = []
        responses = [_tool_call_answer("a", "b", "c"), _final_answer()]

        def handler(request: httpx.Request) -> httpx.Response:
            sent_bodies.append(json.loads(request.content))
            return httpx.Response(200, json=responses[len(sent_bodies) - 1])

        search_executor.execute = AsyncMock(side_effect=lambda q, *_: f"results for {q}")
        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        await loop.run(BODY)

        tool_messages = [m for m in sent_bodies[1]["messages"] if m["role"] == "tool"]
        assert [(m["tool_call_id"], m["content"]) for m in tool_messages] == [
            ("call_0", "results for a"),
            ("call_1", "results for b"),
            ("call_2", "results for c"),
        ]

    @pytest.mark.asyncio
    async def test_unknown_tool_continues_loop(self, mock_http_client, search_executor):
        unknown = _tool_call_answer("q")
        unknown["choices"][0]["message"]["tool_calls"][0]["function"]["name"] = "delete_files"
        sent_bodies: list[dict] = []
        responses = [unknown, _final_answer("done")]

        def handler(request: httpx.Request) -> httpx.Response:
            sent_bodies.append(json.loads(request.content))
            return httpx.Response(200, json=responses[len(sent_bodies) - 1])

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        result = await loop.run(BODY)

        assert result["choices"][0]["message"]["content"] == "done"
        assert sent_bodies[1]["messages"][-1]["content"] == "Unknown tool: delete_files"

    @pytest.mark.asyncio
    async def test_loop_is_bounded(self, mock_http_client, search_executor):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json=_tool_call_answer("again"))

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        with pytest.raises(ToolIterationLimitError) as exc_info:
            await loop.run(BODY)

        assert calls == MAX_TOOL_ITERATIONS == 3
        assert exc_info.value.to_payload() == {"error": "Maximum tool iterations reached"}
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_tool_calls_finish_without_calls_is_final(
        self, mock_http_client, search_executor
    ):
        payload = _final_answer()
        payload["choices"][0]["finish_reason"] = "tool_calls"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        assert await loop.run(BODY) == payload


class TestUpstreamErrors:
    @pytest.mark.asyncio
    async def test_nested_error_message_and_status(self, mock_http_client, search_executor):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(402, json={"error": {"message": "Insufficient credits", "code": 402}})

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        with pytest.raises(UpstreamError) as exc_info:
            await loop.run(BODY)

        assert exc_info.value.status_code == 402
        assert exc_info.value.to_payload() == {"error": "Insufficient credits"}

    @pytest.mark.asyncio
    async def test_raw_body_when_not_json(self, mock_http_client, search_executor):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        with pytest.raises(UpstreamError) as exc_info:
            await loop.run(BODY)

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_json_without_message_uses_default(self, mock_http_client, search_executor):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "nope"})

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        with pytest.raises(UpstreamError) as exc_info:
            await loop.run(BODY)

        assert exc_info.value.message == "OpenRouter API error"


class TestUsageRecording:
    @pytest.mark.asyncio
    async def test_each_round_is_recorded(self, mock_http_client, search_executor):
        responses = [_tool_call_answer("q"), _final_answer()]
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json=responses[calls - 1])

        tracker = UsageTracker()
        loop = CompletionLoop(
            _client(mock_http_client(handler)), ToolExecutor(search_executor), tracker
        )

        await loop.run(BODY)

        records = tracker.get_recent_records()
        assert [r.action for r in records] == ["chat_completion", "chat_tool_followup"]
        assert records[1].input_tokens == 12
        assert records[1].output_tokens == 3


class TestMalformedToolPayloads:
    @pytest.mark.asyncio
    async def test_object_arguments_are_searched(self, mock_http_client, search_executor):
        tool_answer = _tool_call_answer("unused")
        tool_answer["choices"][0]["message"]["tool_calls"][0]["function"]["arguments"] = {
            "query": "x"
        }
        sent_bodies: list[dict] = []
        responses = [tool_answer, _final_answer("done")]

        def handler(request: httpx.Request) -> httpx.Response:
            sent_bodies.append(json.loads(request.content))
            return httpx.Response(200, json=responses[len(sent_bodies) - 1])

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        result = await loop.run(BODY)

        assert result == _final_answer("done")
        assert search_executor.execute.await_args.args[0] == "x"
        assert sent_bodies[1]["messages"][-1]["role"] == "tool"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("choices", [[None], [], "oops", None])
    async def test_unusual_choices_returned_unchanged(
        self, mock_http_client, search_executor, choices
    ):
        payload = {"id": "gen-odd", "model": "openai/gpt-4o", "choices": choices}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        loop = CompletionLoop(_client(mock_http_client(handler)), ToolExecutor(search_executor))

        assert await loop.run(BODY) == payload
        search_executor.execute.assert_not_awaited()
