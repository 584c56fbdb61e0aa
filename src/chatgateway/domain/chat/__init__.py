"""Chat domain module.

Modules:
- request_builder: upstream request bodies and model capabilities
- tool_calls: streamed tool-call accumulation and argument parsing
- tool_executor: tool dispatch (web search)
- completion_loop: non-streaming tool-calling loop
- streaming: streaming tool-calling loop and SSE plumbing
- backends: local vs. remote backend selection
"""

from chatgateway.domain.chat.backends import BackendTarget, resolve_backend
from chatgateway.domain.chat.completion_loop import MAX_TOOL_ITERATIONS, CompletionLoop
from chatgateway.domain.chat.request_builder import (
    CompletionRequest,
    SamplingParams,
    build_completion_body,
)
from chatgateway.domain.chat.streaming import SSEChannel, StreamingCompletionLoop
from chatgateway.domain.chat.tool_executor import ToolExecution, ToolExecutor
from chatgateway.domain.chat.types import FunctionCall, ToolCall

__all__ = [
    "BackendTarget",
    "CompletionLoop",
    "CompletionRequest",
    "FunctionCall",
    "MAX_TOOL_ITERATIONS",
    "SamplingParams",
    "SSEChannel",
    "StreamingCompletionLoop",
    "ToolCall",
    "ToolExecution",
    "ToolExecutor",
    "build_completion_body",
    "resolve_backend",
]
