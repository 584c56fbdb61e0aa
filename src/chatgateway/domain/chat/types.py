"""Shared chat domain types.

Messages travel through the completion loops as OpenAI-format dicts so the
upstream payloads can be appended to the conversation verbatim. Tool calls
get a small dataclass because they are assembled incrementally while
streaming.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from openai.types.chat import (
    ChatCompletionAssistantMessageParam,
    ChatCompletionMessageToolCallParam,
    ChatCompletionToolMessageParam,
)

# Conversation entries as sent to the provider
Message = dict[str, Any]

WEB_SEARCH_TOOL_NAME = "web_search"


def arguments_text(value: Any) -> str:
    """Tool-call arguments as wire text.

    Some providers send already-decoded objects instead of a JSON string;
    those are re-encoded. Anything that cannot be encoded counts as empty.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return ""


@dataclass
class FunctionCall:
    name: str = ""
    arguments: str = ""


@dataclass
class ToolCall:
    """A model-requested function invocation."""

    id: str = ""
    type: Literal["function"] = "function"
    function: FunctionCall = field(default_factory=FunctionCall)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        function = data.get("function")
        if not isinstance(function, dict):
            function = {}
        return cls(
            id=str(data.get("id") or ""),
            function=FunctionCall(
                name=str(function.get("name") or ""),
                arguments=arguments_text(function.get("arguments")),
            ),
        )

    def to_param(self) -> ChatCompletionMessageToolCallParam:
        return ChatCompletionMessageToolCallParam(
            id=self.id,
            type="function",
            function={"name": self.function.name, "arguments": self.function.arguments},
        )


def assistant_tool_call_message(
    tool_calls: list[ToolCall], content: str = ""
) -> ChatCompletionAssistantMessageParam:
    """Assistant turn announcing the tool calls it made."""
    return ChatCompletionAssistantMessageParam(
        role="assistant",
        content=content,
        tool_calls=[tc.to_param() for tc in tool_calls],
    )


def tool_result_message(tool_call: ToolCall, content: str) -> ChatCompletionToolMessageParam:
    """Tool turn answering ``tool_call``, matched by its id."""
    message = ChatCompletionToolMessageParam(
        role="tool",
        tool_call_id=tool_call.id,
        content=content,
    )
    # OpenRouter accepts the function name on tool messages
    message["name"] = tool_call.function.name  # type: ignore[typeddict-unknown-key]
    return message
