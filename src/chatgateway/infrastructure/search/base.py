"""Base types for web search providers.

Tavily, Serper and Exa disagree on request parameters, authentication and
response layout, so each provider contributes its own request builder and
response formatter instead of implementing a shared interface.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

MAX_FORMATTED_RESULTS = 8


class SearchSettings(BaseModel):
    """User-tunable search knobs.

    Not every provider reads every field; unknown keys are ignored.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    max_results: int = 5
    # Only sent when non-empty (Tavily, Exa)
    include_domains: list[str] = []
    exclude_domains: list[str] = []

    # Tavily
    search_depth: str = "basic"
    include_images: bool = False
    include_answer: bool = True
    topic: str = "general"
    include_raw_content: bool = False

    # Serper
    country: str = "us"
    language: str = "en"
    autocorrect: bool = True
    time_range: str | None = None  # hour, day, week, month, year or none
    page: int | None = None

    # Exa
    search_type: str = "auto"
    use_autoprompt: bool = True
    livecrawl: str = "fallback"
    include_full_text: bool = True
    max_text_characters: int = 3000
    include_highlights: bool = True
    highlights_per_result: int = 3
    category: str | None = None
    start_published_date: str | None = None
    end_published_date: str | None = None


@dataclass(frozen=True)
class SearchRequest:
    """A provider-shaped HTTP request."""

    url: str
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FormattedResults:
    """Provider results rendered as markdown for the model."""

    text: str
    result_count: int


@dataclass(frozen=True)
class SearchProvider:
    """Strategy table entry for one search API."""

    name: str
    build_request: Callable[[str, str, SearchSettings], SearchRequest]
    format_response: Callable[[dict[str, Any]], FormattedResults]
    # Client-facing message for a non-2xx answer: (status, body text)
    describe_error: Callable[[int, str], str]


def format_result(position: int, title: Any, snippet: Any, url: Any) -> str:
    return f"{position}. **{title}**\n   {snippet}\n   Source: {url}"


def prepend_summary(label: str, summary: str, body: str, *, separator: bool = True) -> str:
    """Put a provider-generated answer or hint above the numbered results."""
    divider = "\n\n---\n\n" if separator else "\n\n"
    return f"**{label}:** {summary}{divider}{body}"


def try_parse_object(body: str) -> dict[str, Any]:
    """Decode a provider error body, or ``{}`` when it is not a JSON object."""
    try:
        data = json.loads(body)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
