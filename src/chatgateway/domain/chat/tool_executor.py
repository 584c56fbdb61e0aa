"""Tool executor for the completion loops.

Uses a strategy dict for tool dispatch. Unknown tools and failing tools
produce a tool message instead of an exception so the model can react to
them in the conversation.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from openai.types.chat import ChatCompletionToolMessageParam

from chatgateway.domain.chat.tool_calls import parse_tool_arguments
from chatgateway.domain.chat.types import WEB_SEARCH_TOOL_NAME, ToolCall, tool_result_message
from chatgateway.infrastructure.search import SearchExecutor, SearchSettings
from chatgateway.observability.metrics import TOOL_CALLS

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[str]]


@dataclass
class ToolExecution:
    """Result of executing a tool."""

    tool_call: ToolCall
    result: str
    error: str | None = None

    @property
    def content(self) -> str:
        return self.result if not self.error else f"Error: {self.error}"

    def to_message(self) -> ChatCompletionToolMessageParam:
        return tool_result_message(self.tool_call, self.content)


class ToolExecutor:
    """Executes tool calls requested by the model."""

    def __init__(
        self,
        search_executor: SearchExecutor,
        search_provider: str = "tavily",
        search_api_key: str | None = None,
        search_settings: SearchSettings | None = None,
        max_concurrency: int = 4,
    ):
        """Initialize the tool executor.

        Args:
            search_executor: Runs ``web_search`` calls
            search_provider: Provider name (tavily, serper, exa)
            search_api_key: Key for the search provider
            search_settings: Provider knobs from the request
            max_concurrency: Upper bound on tools running at once
        """
        self.search_executor = search_executor
        self.search_provider = search_provider
        self.search_api_key = search_api_key or ""
        self.search_settings = search_settings or SearchSettings()
        self.max_concurrency = max(1, max_concurrency)

    def _tool_handlers(self) -> dict[str, ToolHandler]:
        return {
            WEB_SEARCH_TOOL_NAME: self._web_search,
        }

    async def _web_search(self, arguments: dict[str, Any]) -> str:
        query = arguments.get("query") or ""
        return await self.search_executor.execute(
            str(query),
            self.search_provider,
            self.search_api_key,
            self.search_settings,
        )

    async def execute(self, tool_call: ToolCall) -> ToolExecution:
        """Execute a single tool call and return the result."""
        name = tool_call.function.name
        handler = self._tool_handlers().get(name)
        if handler is None:
            logger.warning("Model requested unknown tool %s", name)
            TOOL_CALLS.labels(tool="unknown", outcome="unknown_tool").inc()
            return ToolExecution(tool_call=tool_call, result=f"Unknown tool: {name}")

        try:
            arguments = parse_tool_arguments(tool_call.function.arguments)
            logger.debug("Executing tool %s with input %s", name, arguments)
            result = await handler(arguments)
        except Exception as e:
            logger.exception("Error executing tool %s", name)
            TOOL_CALLS.labels(tool=name, outcome="error").inc()
            return ToolExecution(tool_call=tool_call, result="", error=str(e) or type(e).__name__)
        TOOL_CALLS.labels(tool=name, outcome="ok").inc()
        return ToolExecution(tool_call=tool_call, result=result)

    async def execute_all(self, tool_calls: list[ToolCall]) -> list[ToolExecution]:
        """Run ``tool_calls`` concurrently.

        Results come back in the order of ``tool_calls``, not in completion
        order.
        """
        if not tool_calls:
            return []

        semaphore = asyncio.Semaphore(min(self.max_concurrency, len(tool_calls)))

        async def _execute(tool_call: ToolCall) -> ToolExecution:
            async with semaphore:
                return await self.execute(tool_call)

        return list(await asyncio.gather(*(_execute(tc) for tc in tool_calls)))
