"""Tavily search API (https://tavily.com).

Tavily takes the API key in the JSON body and can return a synthesized
answer next to the result list.
"""

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

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


def build_request(query: str, api_key: str, settings: SearchSettings) -> SearchRequest:
    body: dict[str, Any] = {
        "api_key": api_key,
        "query": query,
        "max_results": settings.max_results,
        "search_depth": settings.search_depth,
        "include_images": settings.include_images,
        "include_answer": settings.include_answer,
        "topic": settings.topic,
    }
    if settings.include_raw_content:
        body["include_raw_content"] = True
    if settings.include_domains:
        body["include_domains"] = settings.include_domains
    if settings.exclude_domains:
        body["exclude_domains"] = settings.exclude_domains
    return SearchRequest(url=TAVILY_SEARCH_URL, body=body)


def format_response(data: dict[str, Any]) -> FormattedResults:
    results = data.get("results") or []
    text = "\n\n".join(
        format_result(i, r.get("title"), r.get("content"), r.get("url"))
        for i, r in enumerate(results[:MAX_FORMATTED_RESULTS], start=1)
    )
    if data.get("answer"):
        text = prepend_summary("AI Summary", data["answer"], text)
    return FormattedResults(text=text, result_count=len(results))


def describe_error(status_code: int, body: str) -> str:
    _ = status_code
    error = try_parse_object(body).get("error")
    return error if isinstance(error, str) and error else "Tavily API error"


PROVIDER = SearchProvider(
    name="tavily",
    build_request=build_request,
    format_response=format_response,
    describe_error=describe_error,
)
