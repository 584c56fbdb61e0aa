"""FastAPI dependencies for API routes.

Network clients and caches are process-wide and live on ``app.state``;
they are created on first use when the lifespan has not set them up.
"""

import httpx
from fastapi import Depends, Request

from chatgateway.config import Settings, get_settings
from chatgateway.infrastructure.llm import UsageTracker
from chatgateway.infrastructure.search import SearchCache, SearchExecutor, SearchProxy


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared client for every upstream call."""
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.upstream_timeout_seconds))


def get_http_client(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> httpx.AsyncClient:
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        client = build_http_client(settings)
        request.app.state.http_client = client
    return client


def get_search_cache(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> SearchCache:
    cache = getattr(request.app.state, "search_cache", None)
    if cache is None:
        cache = SearchCache(ttl_seconds=settings.search_cache_ttl_seconds)
        request.app.state.search_cache = cache
    return cache


def get_usage_tracker(request: Request) -> UsageTracker:
    tracker = getattr(request.app.state, "usage_tracker", None)
    if tracker is None:
        tracker = UsageTracker()
        request.app.state.usage_tracker = tracker
    return tracker


def get_search_executor(
    client: httpx.AsyncClient = Depends(get_http_client),
    cache: SearchCache = Depends(get_search_cache),
) -> SearchExecutor:
    return SearchExecutor(client, cache)


def get_search_proxy(client: httpx.AsyncClient = Depends(get_http_client)) -> SearchProxy:
    return SearchProxy(client)


__all__ = [
    "build_http_client",
    "get_http_client",
    "get_search_cache",
    "get_search_executor",
    "get_search_proxy",
    "get_settings",
    "get_usage_tracker",
]
