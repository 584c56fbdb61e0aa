"""Standalone web search endpoints.

Each route calls one provider and returns its JSON unchanged. Server-side
keys win over the ``x-<provider>-api-key`` headers.
"""

import logging
from typing import Any

import httpx
from fastapi import APIRouter, Depends, Request

from chatgateway.api.deps import get_search_proxy
from chatgateway.api.schemas import (
    ExaSearchRequest,
    SearchProxyRequest,
    SerperSearchRequest,
    TavilySearchRequest,
)
from chatgateway.config import Settings, get_settings
from chatgateway.domain.chat.backends import resolve_remote_api_key
from chatgateway.infrastructure.search import SearchProxy, SearchSettings
from chatgateway.infrastructure.search.serper import endpoint_for
from chatgateway.shared.exceptions import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])

SERPER_IMAGE_RESULTS = 5


def _require_query(search_request: SearchProxyRequest) -> str:
    query = search_request.query.strip()
    if not query:
        raise ValidationError("Query is required")
    return query


@router.post("/search")
async def tavily_search(
    request: Request,
    search_request: TavilySearchRequest,
    settings: Settings = Depends(get_settings),
    proxy: SearchProxy = Depends(get_search_proxy),
) -> dict[str, Any]:
    """Tavily search; the response includes Tavily's synthesized answer."""
    query = _require_query(search_request)
    api_key = resolve_remote_api_key(
        settings.tavily_api_key, request.headers.get("x-tavily-api-key"), "Tavily"
    )
    return await proxy.search("tavily", query, api_key, search_request.to_settings())


@router.post("/serper")
async def serper_search(
    request: Request,
    search_request: SerperSearchRequest,
    settings: Settings = Depends(get_settings),
    proxy: SearchProxy = Depends(get_search_proxy),
) -> dict[str, Any]:
    """Google search through Serper.

    With ``includeImages`` a second image search is attached as ``images``;
    if it fails the main results are returned without them.
    """
    query = _require_query(search_request)
    api_key = resolve_remote_api_key(
        settings.serper_api_key, request.headers.get("x-serper-api-key"), "Serper"
    )
    search_settings = search_request.to_settings()
    data = await proxy.search(
        "serper", query, api_key, search_settings, url=endpoint_for(search_request.type)
    )

    if search_request.include_images:
        image_settings = SearchSettings(
            max_results=SERPER_IMAGE_RESULTS,
            country=search_settings.country,
            language=search_settings.language,
            autocorrect=search_settings.autocorrect,
        )
        try:
            images = await proxy.search(
                "serper", query, api_key, image_settings, url=endpoint_for("images")
            )
        except (UpstreamError, httpx.HTTPError) as e:
            logger.warning("Serper image search failed for %r: %s", query, e)
        else:
            data["images"] = images.get("images")
    return data


@router.post("/exa")
async def exa_search(
    request: Request,
    search_request: ExaSearchRequest,
    settings: Settings = Depends(get_settings),
    proxy: SearchProxy = Depends(get_search_proxy),
) -> dict[str, Any]:
    """Exa neural/keyword search with page text and highlights."""
    query = _require_query(search_request)
    api_key = resolve_remote_api_key(
        settings.exa_api_key, request.headers.get("x-exa-api-key"), "Exa"
    )
    data = await proxy.search("exa", query, api_key, search_request.to_settings())
    logger.info("Exa returned %d results for %r", len(data.get("results") or []), query)
    return data
