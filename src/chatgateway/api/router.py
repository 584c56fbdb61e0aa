"""Main API router aggregating all routes."""

from fastapi import APIRouter

from chatgateway.api.routes import chat, health, lmstudio, search, usage

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(chat.router)
api_router.include_router(lmstudio.router)  # Local LM Studio proxy
api_router.include_router(search.router)  # Standalone Tavily / Serper / Exa
api_router.include_router(usage.router)
