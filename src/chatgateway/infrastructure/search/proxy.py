"""Direct search API access for the standalone search routes.

Unlike :class:`SearchExecutor`, results are neither cached nor rendered:
the provider JSON goes back to the caller as is, and non-2xx answers raise
with the provider's status.
"""

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

import httpx

from chatgateway.infrastructure.search.base import SearchProvider, SearchRequest, SearchSettings
from chatgateway.infrastructure.search.executor import SEARCH_PROVIDERS
from chatgateway.observability.metrics import SEARCH_REQUESTS
from chatgateway.shared.exceptions import UpstreamError
from chatgateway.shared.logging import get_logger

logger = get_logger(__name__)


class SearchProxy:
    """Forwards one search to a provider and returns its JSON body."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        providers: Mapping[str, SearchProvider] | None = None,
    ) -> None:
        self.client = client
        self.providers = providers if providers is not None else SEARCH_PROVIDERS

    def build(
        self,
        provider: str,
        query: str,
        api_key: str,
        settings: SearchSettings,
        *,
        url: str | None = None,
    ) -> SearchRequest:
        request = self.providers[provider].build_request(query, api_key, settings)
        return replace(request, url=url) if url else request

    async def send(self, provider: str, request: SearchRequest) -> dict[str, Any]:
        """POST ``request`` and return the decoded body.

        Raises:
            UpstreamError: The provider answered with a non-2xx status
        """
        response = await self.client.post(
            request.url,
            json=request.body,
            headers={"Content-Type": "application/json", **request.headers},
        )
        if response.is_error:
            logger.error(
                "search_proxy_error",
                provider=provider,
                status=response.status_code,
                error=response.text[:500],
            )
            SEARCH_REQUESTS.labels(provider=provider, result="http_error").inc()
            message = self.providers[provider].describe_error(response.status_code, response.text)
            raise UpstreamError(message, response.status_code)

        SEARCH_REQUESTS.labels(provider=provider, result="ok").inc()
        data: dict[str, Any] = response.json()
        return data

    async def search(
        self,
        provider: str,
        query: str,
        api_key: str,
        settings: SearchSettings,
        *,
        url: str | None = None,
    ) -> dict[str, Any]:
        logger.info("search_proxy_started", provider=provider, query=query)
        return await self.send(provider, self.build(provider, query, api_key, settings, url=url))
