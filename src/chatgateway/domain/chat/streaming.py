"""Streaming chat completion with tool calling.

The upstream SSE body is decoded line by line while it is relayed to the
browser. Content and reasoning frames are forwarded as they arrive. Tool
call fragments are never forwarded: they are merged until the upstream
stream ends, then the tools run and a fresh upstream stream is opened with
the results appended. While a round is producing tool calls, its content
and ``[DONE]`` frames are held back because the final answer is still to
come.

The work runs in a background task that writes into an ``SSEChannel``; the
HTTP response only reads from the channel. The task closes the channel
exactly once, whichever way it ends.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx

from chatgateway.domain.chat.completion_loop import MAX_TOOL_ITERATIONS
from chatgateway.domain.chat.tool_calls import ToolCallAccumulator, try_parse_json
from chatgateway.domain.chat.tool_executor import ToolExecutor
from chatgateway.domain.chat.types import ToolCall, assistant_tool_call_message
from chatgateway.infrastructure.llm import OpenRouterClient
from chatgateway.observability.metrics import UPSTREAM_ERRORS

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
DONE_EVENT = f"{SSE_DATA_PREFIX}{DONE_SENTINEL}\n\n"
REASONING_DELTA_KEYS = ("reasoning_content", "reasoning", "thinking")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

# Keeps detached producer tasks referenced until they finish
_background_tasks: set[asyncio.Task[None]] = set()


def sse_event(payload: dict[str, Any]) -> str:
    return f"{SSE_DATA_PREFIX}{json.dumps(payload)}\n\n"


def searching_event(query_preview: str) -> str:
    return sse_event({"choices": [{"delta": {"searching": True, "searchQuery": query_preview}}]})


def search_complete_event(result_count: int) -> str:
    return sse_event(
        {"choices": [{"delta": {"searchComplete": True, "searchResultCount": result_count}}]}
    )


class SSELineBuffer:
    """Splits a byte stream into text lines.

    Multi-byte characters split across chunks are decoded once complete.
    The trailing partial line stays buffered until more bytes arrive.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return lines

    def flush(self) -> list[str]:
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return [tail] if tail else []


class SSEChannel:
    """Single-producer frame queue feeding a streaming HTTP response."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, frame: str) -> None:
        if self._closed:
            raise RuntimeError("SSE channel is closed")
        await self._queue.put(frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


@dataclass
class StreamRound:
    """What one upstream stream left behind once it ended."""

    finish_reason: str | None = None
    saw_tool_calls: bool = False
    accumulator: ToolCallAccumulator = field(default_factory=ToolCallAccumulator)

    @property
    def tool_calls(self) -> list[ToolCall]:
        return self.accumulator.tool_calls()


class StreamingCompletionLoop:
    """Relays an upstream completion stream, running tools between rounds."""

    def __init__(
        self,
        client: OpenRouterClient,
        tool_executor: ToolExecutor,
        tools_enabled: bool,
        max_iterations: int = MAX_TOOL_ITERATIONS,
    ):
        self.client = client
        self.tool_executor = tool_executor
        self.tools_enabled = tools_enabled
        self.max_iterations = max_iterations

    def start(self, body: dict[str, Any]) -> SSEChannel:
        """Launch the producer task and return the channel it writes to."""
        channel = SSEChannel()
        task = asyncio.create_task(self._produce(body, channel), name="chat-completion-stream")
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        return channel

    async def _produce(self, body: dict[str, Any], channel: SSEChannel) -> None:
        try:
            await self.run(body, channel)
        except Exception:
            logger.exception("Streaming error")
            await channel.send(sse_event({"error": "Streaming error"}))
        finally:
            channel.close()

    async def run(self, body: dict[str, Any], channel: SSEChannel) -> None:
        """Drive the upstream rounds, writing client frames to ``channel``."""
        messages: list[dict[str, Any]] = list(body["messages"])

        for iteration in range(1, self.max_iterations + 1):
            async with self.client.stream({**body, "messages": messages}) as response:
                if response.is_error:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(
                        "OpenRouter streaming error %d: %s",
                        response.status_code,
                        error_text[:500],
                    )
                    UPSTREAM_ERRORS.labels(
                        backend="openrouter", status_code=str(response.status_code)
                    ).inc()
                    await channel.send(sse_event({"error": error_text}))
                    return
                stream_round = await self._relay(response, channel)

            tool_calls = stream_round.tool_calls
            if not (stream_round.saw_tool_calls and tool_calls and self.tools_enabled):
                logger.debug("Stream finished: %s", stream_round.finish_reason)
                return

            logger.info(
                "Processing %d streamed tool calls (iteration %d/%d)",
                len(tool_calls),
                iteration,
                self.max_iterations,
            )
            await channel.send(searching_event(tool_calls[0].function.arguments))

            messages.append(dict(assistant_tool_call_message(tool_calls)))
            executions = await self.tool_executor.execute_all(tool_calls)
            messages.extend(dict(execution.to_message()) for execution in executions)

            await channel.send(search_complete_event(len(executions)))

        logger.warning("Maximum tool iterations reached (%d), closing stream", self.max_iterations)

    async def _relay(self, response: httpx.Response, channel: SSEChannel) -> StreamRound:
        stream_round = StreamRound()
        lines = SSELineBuffer()
        async for chunk in response.aiter_bytes():
            for line in lines.feed(chunk):
                await self._handle_line(line, stream_round, channel)
        for line in lines.flush():
            await self._handle_line(line, stream_round, channel)
        return stream_round

    async def _handle_line(self, line: str, stream_round: StreamRound, channel: SSEChannel) -> None:
        line = line.rstrip("\r")
        if not line.startswith(SSE_DATA_PREFIX):
            return

        data = line[len(SSE_DATA_PREFIX) :]
        if data == DONE_SENTINEL:
            if not stream_round.saw_tool_calls:
                await channel.send(DONE_EVENT)
            return

        # Frames cut off mid-read do not parse; they are skipped.
        frame = try_parse_json(data)
        if not isinstance(frame, dict):
            return

        choices = frame.get("choices")
        choice = choices[0] if isinstance(choices, list) and choices else {}
        if not isinstance(choice, dict):
            return
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            delta = {}

        if choice.get("finish_reason"):
            stream_round.finish_reason = choice["finish_reason"]

        tool_call_deltas = delta.get("tool_calls")
        if isinstance(tool_call_deltas, list) and tool_call_deltas:
            stream_round.saw_tool_calls = True
            stream_round.accumulator.extend(tool_call_deltas)

        if stream_round.saw_tool_calls:
            return

        if delta.get("content") or any(delta.get(key) for key in REASONING_DELTA_KEYS):
            await channel.send(f"{line}\n\n")
