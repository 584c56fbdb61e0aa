"""Serper Google search API (https://serper.dev)."""

from typing import Any

from chatgateway.infrastructure.search.base import (
    MAX_FORMATTED_RESULTS,
    FormattedResults,
    SearchProvider,
    SearchRequest,
    SearchSettings,
    format_result,
    prepend_summary,
    try_parse_object,
)

SERPER_BASE_URL = "https://google.serper.dev"
SERPER_SEARCH_URL = f"{SERPER_BASE_URL}/search"
SERPER_VERTICALS = ("search", "images", "news", "videos", "places", "shopping")

# Google "tbs" values for the time range filter
TIME_RANGE_TBS = {
    "hour": "qdr:h",
    "day": "qdr:d",
    "week": "qdr:w",
    "month": "qdr:m",
    "year": "qdr:y",
}


def build_request(query: str, api_key: str, settings: SearchSettings) -> SearchRequest:
    body: dict[str, Any] = {
        "q": query,
        "gl": settings.country,
        "hl": settings.language,
        "num": settings.max_results,
        "autocorrect": settings.autocorrect,
    }
    if settings.time_range and settings.time_range in TIME_RANGE_TBS:
        body["tbs"] = TIME_RANGE_TBS[settings.time_range]
    if settings.page is not None:
        body["page"] = settings.page

    return SearchRequest(
        url=SERPER_SEARCH_URL,
        body=body,
        headers={"X-API-KEY": api_key},
    )


def format_response(data: dict[str, Any]) -> FormattedResults:
    results = data.get("organic") or []
    text = "\n\n".join(
        format_result(i, r.get("title"), r.get("snippet"), r.get("link"))
        for i, r in enumerate(results[:MAX_FORMATTED_RESULTS], start=1)
    )

    answer_box = data.get("answerBox") or {}
    knowledge_graph = data.get("knowledgeGraph") or {}
    if answer_box.get("answer"):
        text = prepend_summary("Quick Answer", answer_box["answer"], text)
    elif knowledge_graph.get("description"):
        text = prepend_summary("Knowledge", knowledge_graph["description"], text)

    return FormattedResults(text=text, result_count=len(results))


def endpoint_for(vertical: str) -> str:
    """Serper serves each Google vertical from its own path."""
    if vertical not in SERPER_VERTICALS:
        raise ValueError(f"Unknown Serper search type: {vertical}")
    return f"{SERPER_BASE_URL}/{vertical}"


def describe_error(status_code: int, body: str) -> str:
    _ = status_code
    message = try_parse_object(body).get("message")
    return message if isinstance(message, str) and message else "Serper API error"


PROVIDER = SearchProvider(
    name="serper",
    build_request=build_request,
    format_response=format_response,
    describe_error=describe_error,
)
