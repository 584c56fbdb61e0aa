"""Exa neural search API (https://exa.ai).

Exa returns page text and highlights rather than snippets; highlights win
when both are present.
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
)

EXA_SEARCH_URL = "https://api.exa.ai/search"
TEXT_PREVIEW_CHARS = 300
MAX_HIGHLIGHTS = 2


def build_request(query: str, api_key: str, settings: SearchSettings) -> SearchRequest:
    text_option: dict[str, Any] | bool = False
    if settings.include_full_text:
        text_option = {"maxCharacters": settings.max_text_characters}

    highlights_option: dict[str, Any] | bool = False
    if settings.include_highlights:
        highlights_option = {"numSentences": settings.highlights_per_result}

    body: dict[str, Any] = {
        "query": query,
        "type": settings.search_type,
        "useAutoprompt": settings.use_autoprompt,
        "numResults": settings.max_results,
        "livecrawl": settings.livecrawl,
        "contents": {
            "text": text_option,
            "highlights": highlights_option,
        },
    }
    if settings.category:
        body["category"] = settings.category
    if settings.include_domains:
        body["includeDomains"] = settings.include_domains
    if settings.exclude_domains:
        body["excludeDomains"] = settings.exclude_domains
    if settings.start_published_date:
        body["startPublishedDate"] = settings.start_published_date
    if settings.end_published_date:
        body["endPublishedDate"] = settings.end_published_date

    return SearchRequest(
        url=EXA_SEARCH_URL,
        body=body,
        headers={"x-api-key": api_key},
    )


def _result_preview(result: dict[str, Any]) -> str:
    highlights = result.get("highlights") or []
    if highlights:
        return " ... ".join(highlights[:MAX_HIGHLIGHTS])
    text = result.get("text") or ""
    if len(text) > TEXT_PREVIEW_CHARS:
        return text[:TEXT_PREVIEW_CHARS] + "..."
    return text


def format_response(data: dict[str, Any]) -> FormattedResults:
    results = data.get("results") or []
    text = "\n\n".join(
        format_result(i, r.get("title"), _result_preview(r), r.get("url"))
        for i, r in enumerate(results[:MAX_FORMATTED_RESULTS], start=1)
    )
    if data.get("autopromptString"):
        text = prepend_summary(
            "Optimized Query", data["autopromptString"], text, separator=False
        )
    return FormattedResults(text=text, result_count=len(results))


def describe_error(status_code: int, body: str) -> str:
    return f"Exa API error: {status_code} - {body}"


PROVIDER = SearchProvider(
    name="exa",
    build_request=build_request,
    format_response=format_response,
    describe_error=describe_error,
)
