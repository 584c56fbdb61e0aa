"""Non-streaming chat completion with tool calling.

Each round sends the conversation to the model. If the model stops to
request tools, the assistant turn is appended verbatim, every requested
tool runs concurrently, the tool results are appended in request order and
the model is asked again. The number of rounds is bounded.
"""

import logging
from typing import Any

from chatgateway.domain.chat.tool_executor import ToolExecutor
from chatgateway.domain.chat.types import ToolCall
from chatgateway.infrastructure.llm import OpenRouterClient, UsageTracker
from chatgateway.shared.exceptions import ToolIterationLimitError

logger = logging.getLogger(__name__)

MAX_TOOL_ITERATIONS = 3
TOOL_CALLS_FINISH_REASON = "tool_calls"


class CompletionLoop:
    """Runs a chat completion until the model answers without tools."""

    def __init__(
        self,
        client: OpenRouterClient,
        tool_executor: ToolExecutor,
        usage_tracker: UsageTracker | None = None,
        max_iterations: int = MAX_TOOL_ITERATIONS,
    ):
        self.client = client
        self.tool_executor = tool_executor
        self.usage_tracker = usage_tracker
        self.max_iterations = max_iterations

    async def run(self, body: dict[str, Any]) -> dict[str, Any]:
        """Complete ``body`` and return the final upstream payload unmodified.

        Raises:
            UpstreamError: The provider answered with a non-2xx status
            ToolIterationLimitError: The model still wanted tools after the
                last allowed round
        """
        messages: list[dict[str, Any]] = list(body["messages"])

        for iteration in range(1, self.max_iterations + 1):
            data = await self.client.complete({**body, "messages": messages})
            if self.usage_tracker is not None:
                action = "chat_completion" if iteration == 1 else "chat_tool_followup"
                self.usage_tracker.record_completion(data, action)

            choices = data.get("choices")
            choice = choices[0] if isinstance(choices, list) and choices else None
            if not isinstance(choice, dict):
                return data
            message = choice.get("message")
            raw_tool_calls = message.get("tool_calls") if isinstance(message, dict) else None

            if (
                choice.get("finish_reason") != TOOL_CALLS_FINISH_REASON
                or not isinstance(raw_tool_calls, list)
                or not raw_tool_calls
            ):
                return data

            logger.info(
                "Tool calls detected: %d (iteration %d/%d)",
                len(raw_tool_calls),
                iteration,
                self.max_iterations,
            )

            messages.append(message)
            tool_calls = [ToolCall.from_dict(tc) for tc in raw_tool_calls if isinstance(tc, dict)]
            executions = await self.tool_executor.execute_all(tool_calls)
            messages.extend(execution.to_message() for execution in executions)

        logger.warning("Maximum tool iterations reached (%d)", self.max_iterations)
        raise ToolIterationLimitError(self.max_iterations)
