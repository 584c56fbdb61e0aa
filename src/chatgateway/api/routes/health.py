"""Health check endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from chatgateway.config import Settings, get_settings

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    remote_configured: bool
    local_endpoint: str


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Basic health check - always returns OK if service is running.

    Upstreams are not contacted; ``remote_configured`` only says whether a
    server-side OpenRouter key is set.
    """
    from chatgateway import __version__

    return HealthResponse(
        status="healthy",
        version=__version__,
        remote_configured=bool(settings.openrouter_api_key),
        local_endpoint=settings.lm_studio_endpoint,
    )
