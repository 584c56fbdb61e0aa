"""Outbound chat-completion request bodies.

Builds the OpenAI-compatible JSON body sent to OpenRouter. Which models get
the tool manifest is decided by a static capability table rather than
conditionals at the call sites.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from openai.types.chat import ChatCompletionToolParam

from chatgateway.domain.chat.types import WEB_SEARCH_TOOL_NAME, Message

MAX_TOKENS_FLOOR = 16000
DEFAULT_REASONING_EFFORT = "medium"

WEB_SEARCH_TOOL: ChatCompletionToolParam = {
    "type": "function",
    "function": {
        "name": WEB_SEARCH_TOOL_NAME,
        "description": (
            "Search the web for current information, news, events, real-time data, "
            "or recent facts. Use this when the user asks about:\n"
            "- Current events, news, or recent happenings\n"
            "- Today's weather, stock prices, sports scores, or live data\n"
            "- Recent product releases, updates, or announcements\n"
            "- Local events, places, or businesses\n"
            "- Prices, availability, or shopping comparisons\n"
            "- Factual verification of recent claims or rumors\n"
            "- Any information that might have changed since your knowledge cutoff\n"
            "\n"
            "DO NOT use for:\n"
            "- General knowledge questions or historical facts\n"
            "- Conceptual explanations\n"
            "- Math calculations or code generation\n"
            "- Creative writing, brainstorming or personal opinions"
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": (
                        "The search query. Be specific and concise. Include relevant "
                        "context like location, timeframe, or specific product names. "
                        "For example: 'iPhone 16 Pro price Austria December 2024' "
                        "rather than just 'iPhone price'."
                    ),
                }
            },
            "required": ["query"],
        },
    },
}

# Model id fragments known to handle tool calling well
TOOL_CALLING_MODEL_PATTERNS: tuple[str, ...] = (
    # OpenAI
    "gpt-5", "gpt-5-mini", "gpt-4o", "gpt-4-turbo",
    # Anthropic
    "claude-4", "claude-opus-4", "claude-sonnet-4", "claude-haiku-4",
    "claude-3.5", "claude-3-opus",
    # Google
    "gemini-2.5", "gemini-2", "gemini-pro", "gemini-flash",
    # xAI
    "grok-4", "grok-code",
    # DeepSeek
    "deepseek-v3", "deepseek-chat-v3", "deepseek-coder-v3",
    # Meta
    "llama-4", "llama-4-maverick", "llama-4-scout",
    # Qwen
    "qwen3", "qwen3-max", "qwen3-coder", "qwen3-235b",
    # Mistral
    "codestral-2025", "mistral-large", "mixtral",
    # Others
    "glm-4", "minimax-m2", "command-r",
)  # fmt: skip


@dataclass(frozen=True)
class ModelCapabilities:
    """Static capability flags keyed by model id substrings."""

    tool_calling_patterns: tuple[str, ...] = TOOL_CALLING_MODEL_PATTERNS

    def supports_tool_calling(self, model: str) -> bool:
        model_lower = model.lower()
        return any(pattern in model_lower for pattern in self.tool_calling_patterns)


DEFAULT_CAPABILITIES = ModelCapabilities()


@dataclass
class SamplingParams:
    temperature: float = 0.7
    max_tokens: int | None = MAX_TOKENS_FLOOR
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0


@dataclass
class CompletionRequest:
    """Everything needed to build one upstream request body."""

    model: str
    messages: list[Message]
    sampling: SamplingParams = field(default_factory=SamplingParams)
    stream: bool = False
    reasoning: bool = False
    enable_tools: bool = False
    search_api_key: str | None = None


def effective_max_tokens(requested: int | None) -> int:
    """Never provision less than ``MAX_TOKENS_FLOOR`` completion tokens."""
    return max(requested or MAX_TOKENS_FLOOR, MAX_TOKENS_FLOOR)


def tools_enabled_for(
    request: CompletionRequest,
    capabilities: ModelCapabilities = DEFAULT_CAPABILITIES,
) -> bool:
    """Tools need the caller opt-in, a capable model and a search key."""
    return bool(
        request.enable_tools
        and request.search_api_key
        and capabilities.supports_tool_calling(request.model)
    )


def build_completion_body(
    request: CompletionRequest,
    capabilities: ModelCapabilities = DEFAULT_CAPABILITIES,
) -> dict[str, Any]:
    """Build the OpenRouter chat-completion body for ``request``."""
    sampling = request.sampling
    body: dict[str, Any] = {
        "model": request.model,
        "messages": list(request.messages),
        "temperature": sampling.temperature,
        "max_tokens": effective_max_tokens(sampling.max_tokens),
        "top_p": sampling.top_p,
        "frequency_penalty": sampling.frequency_penalty,
        "presence_penalty": sampling.presence_penalty,
        "stream": request.stream,
    }

    if tools_enabled_for(request, capabilities):
        body["tools"] = [WEB_SEARCH_TOOL]
        body["tool_choice"] = "auto"

    if request.reasoning:
        body["reasoning"] = {"effort": DEFAULT_REASONING_EFFORT}

    return body
