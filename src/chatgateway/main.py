"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from chatgateway import __version__
from chatgateway.api.deps import build_http_client
from chatgateway.api.ratelimit import limiter, rate_limit_exceeded_handler
from chatgateway.api.router import api_router
from chatgateway.config import get_settings
from chatgateway.infrastructure.llm import UsageTracker
from chatgateway.infrastructure.search import SearchCache
from chatgateway.observability.metrics import setup_metrics
from chatgateway.shared.exceptions import GatewayError, UpstreamError
from chatgateway.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown events."""
    # Startup
    setup_logging()
    logger.info("chatgateway_starting", version=__version__)

    # Shared resources (one upstream client and one search cache per process)
    settings = get_settings()
    app.state.http_client = getattr(app.state, "http_client", None) or build_http_client(
        settings
    )
    app.state.search_cache = getattr(app.state, "search_cache", None) or SearchCache(
        ttl_seconds=settings.search_cache_ttl_seconds
    )
    app.state.usage_tracker = getattr(app.state, "usage_tracker", None) or UsageTracker()

    yield

    # Shutdown
    logger.info("chatgateway_stopping")
    http_client = getattr(app.state, "http_client", None)
    if http_client is not None:
        await http_client.aclose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Chat Gateway API",
        description="Multi-model chat completions with web search tool calling",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Rate limiting
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # CORS middleware
    if settings.is_production:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=[
                "Content-Type",
                "Authorization",
                "X-OpenRouter-API-Key",
                "X-Tavily-API-Key",
                "X-Serper-API-Key",
                "X-Exa-API-Key",
            ],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Exception handlers
    register_exception_handlers(app)

    # Include routers
    app.include_router(api_router, prefix="/api")

    # Observability
    setup_metrics(app)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers."""

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        _ = request
        return JSONResponse(
            status_code=422,
            content={
                "error": "Invalid request",
                "details": {"errors": jsonable_encoder(exc.errors())},
            },
        )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        if isinstance(exc, UpstreamError) or exc.status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                status=exc.status_code,
                error=exc.message,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        _ = request
        logger.exception("unexpected_error", error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )


# Create app instance
app = create_app()
