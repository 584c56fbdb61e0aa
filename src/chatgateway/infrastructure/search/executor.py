"""Web search execution for the ``web_search`` tool."""

from collections.abc import Mapping
from typing import Any

import httpx

from chatgateway.infrastructure.search import exa, serper, tavily
from chatgateway.infrastructure.search.base import SearchProvider, SearchSettings
from chatgateway.infrastructure.search.cache import SearchCache
from chatgateway.observability.metrics import SEARCH_REQUESTS
from chatgateway.shared.logging import get_logger

logger = get_logger(__name__)

SEARCH_PROVIDERS: dict[str, SearchProvider] = {
    provider.name: provider for provider in (tavily.PROVIDER, serper.PROVIDER, exa.PROVIDER)
}

ERROR_BODY_PREVIEW_CHARS = 200


def render_search_results(query: str, provider: str, body: str) -> str:
    return f'## Web Search Results for "{query}"\n\n{body}\n\n---\n*Search provider: {provider}*'


class SearchExecutor:
    """Runs web searches and renders the results as tool-response text.

    ``execute`` never raises: every failure comes back as a readable
    message, which the model receives as the tool result.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: SearchCache,
        providers: Mapping[str, SearchProvider] | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.providers = providers if providers is not None else SEARCH_PROVIDERS

    async def execute(
        self,
        query: str,
        provider: str,
        api_key: str,
        settings: SearchSettings | Mapping[str, Any] | None = None,
    ) -> str:
        logger.info("web_search_started", query=query, provider=provider)

        cache_key = SearchCache.key(provider, query)
        cached, hit = self.cache.get(cache_key)
        if hit and cached is not None:
            logger.info("search_cache_hit", query=query, provider=provider)
            SEARCH_REQUESTS.labels(provider=provider, result="cache_hit").inc()
            return cached

        search_provider = self.providers.get(provider)
        if search_provider is None:
            SEARCH_REQUESTS.labels(provider=provider, result="unknown_provider").inc()
            return f'Search failed: Unknown provider "{provider}"'

        try:
            if not isinstance(settings, SearchSettings):
                settings = SearchSettings.model_validate(settings or {})

            request = search_provider.build_request(query, api_key, settings)
            response = await self.client.post(
                request.url,
                json=request.body,
                headers={"Content-Type": "application/json", **request.headers},
            )

            if response.is_error:
                error_text = response.text
                logger.error(
                    "search_api_error",
                    provider=provider,
                    status=response.status_code,
                    error=error_text[:ERROR_BODY_PREVIEW_CHARS],
                )
                SEARCH_REQUESTS.labels(provider=provider, result="http_error").inc()
                return (
                    f"Search failed: {response.status_code} - "
                    f"{error_text[:ERROR_BODY_PREVIEW_CHARS]}"
                )

            formatted = search_provider.format_response(response.json())
            result = render_search_results(query, provider, formatted.text)
        except Exception as e:
            logger.exception("search_failed", provider=provider, query=query)
            SEARCH_REQUESTS.labels(provider=provider, result="error").inc()
            return (
                f"Search failed: {str(e) or type(e).__name__}. "
                "Please try rephrasing or continue without search."
            )

        self.cache.set(cache_key, result)
        SEARCH_REQUESTS.labels(provider=provider, result="ok").inc()
        logger.info(
            "web_search_completed",
            provider=provider,
            result_count=formatted.result_count,
        )
        return result
