"""Request models for the public API.

The browser sends camelCase request options. Messages are OpenAI-format
and are forwarded to the provider as given; camelCase spellings of the
message fields are accepted as well.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from chatgateway.domain.chat.request_builder import (
    MAX_TOKENS_FLOOR,
    CompletionRequest,
    SamplingParams,
)
from chatgateway.infrastructure.search import SearchSettings


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----- Messages -----


class ImageURL(BaseModel):
    url: str
    detail: Literal["auto", "low", "high"] | None = None


class ContentPart(BaseModel):
    """One part of a multimodal message."""

    model_config = ConfigDict(extra="allow")

    type: Literal["text", "image_url"]
    text: str | None = None
    image_url: ImageURL | None = None


class FunctionCallInput(BaseModel):
    name: str
    arguments: str = ""


class ToolCallInput(BaseModel):
    id: str
    type: Literal["function"] = "function"
    function: FunctionCallInput


class MessageInput(_CamelModel):
    """A single message in the conversation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    role: Literal["user", "assistant", "system", "tool"]
    content: str | list[ContentPart] | None = ""
    tool_calls: list[ToolCallInput] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    @model_validator(mode="after")
    def tool_messages_reference_a_call(self) -> "MessageInput":
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("tool messages require tool_call_id")
        return self

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ----- Chat -----


class ChatRequest(_CamelModel):
    """Request to the chat completion endpoint."""

    messages: list[MessageInput] = Field(
        ...,
        min_length=1,
        description="Conversation so far, oldest first",
    )
    model: str = Field(..., min_length=1, description="Model id; local/<id> targets LM Studio")

    temperature: float = 0.7
    max_tokens: int | None = MAX_TOKENS_FLOOR
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    stream: bool = False
    reasoning: bool = False

    # Tool calling options
    enable_auto_search: bool = False
    search_provider: str = "tavily"
    search_api_key: str | None = None
    search_settings: SearchSettings = Field(default_factory=SearchSettings)

    def wire_messages(self) -> list[dict[str, Any]]:
        return [message.to_wire() for message in self.messages]

    def sampling(self) -> SamplingParams:
        return SamplingParams(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
        )

    def to_completion_request(self) -> CompletionRequest:
        return CompletionRequest(
            model=self.model,
            messages=self.wire_messages(),
            sampling=self.sampling(),
            stream=self.stream,
            reasoning=self.reasoning,
            enable_tools=self.enable_auto_search,
            search_api_key=self.search_api_key,
        )


# ----- LM Studio -----


class LMStudioChatRequest(BaseModel):
    """Direct LM Studio proxy request (OpenAI field names)."""

    messages: list[MessageInput] = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    temperature: float = 0.7
    max_tokens: int = 8192
    top_p: float = 1.0
    stream: bool = True
    endpoint: str | None = None


# ----- Search proxy -----


class SearchProxyRequest(_CamelModel):
    """Fields shared by the standalone search routes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    # Blank queries are rejected by the route with a 400
    query: str = ""


class TavilySearchRequest(SearchProxyRequest):
    max_results: int = Field(default=5, ge=1, le=20)
    search_depth: Literal["basic", "advanced"] = "basic"
    include_images: bool = False
    include_domains: list[str] = []
    exclude_domains: list[str] = []
    include_raw_content: bool = False
    topic: Literal["general", "news"] = "general"

    def to_settings(self) -> SearchSettings:
        return SearchSettings(
            max_results=self.max_results,
            search_depth=self.search_depth,
            include_images=self.include_images,
            include_answer=True,
            include_domains=self.include_domains,
            exclude_domains=self.exclude_domains,
            include_raw_content=self.include_raw_content,
            topic=self.topic,
        )


class SerperSearchRequest(SearchProxyRequest):
    max_results: int = Field(default=5, ge=1, le=100)
    include_images: bool = False
    country: str = "at"
    language: str = "de"
    type: Literal["search", "images", "news", "videos", "places", "shopping"] = "search"
    time_range: Literal["none", "hour", "day", "week", "month", "year"] = "none"
    autocorrect: bool = True
    page: int = Field(default=1, ge=1)

    def to_settings(self) -> SearchSettings:
        return SearchSettings(
            max_results=self.max_results,
            country=self.country,
            language=self.language,
            time_range=self.time_range,
            autocorrect=self.autocorrect,
            page=self.page,
        )


class ExaSearchRequest(SearchProxyRequest):
    type: Literal["neural", "keyword", "auto"] = "auto"
    use_autoprompt: bool = True
    num_results: int = Field(default=5, ge=1, le=100)
    category: str | None = None
    include_domains: list[str] = []
    exclude_domains: list[str] = []
    start_published_date: str | None = None
    end_published_date: str | None = None
    livecrawl: Literal["never", "fallback", "always"] = "fallback"

    def to_settings(self) -> SearchSettings:
        return SearchSettings(
            max_results=self.num_results,
            search_type=self.type,
            use_autoprompt=self.use_autoprompt,
            category=self.category,
            include_domains=self.include_domains,
            exclude_domains=self.exclude_domains,
            start_published_date=self.start_published_date,
            end_published_date=self.end_published_date,
            livecrawl=self.livecrawl,
        )
