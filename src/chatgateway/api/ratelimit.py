"""Rate limiting configuration for API endpoints.

Uses slowapi with a fixed window keyed by client IP. Storage is in-memory
unless RATE_LIMIT_STORAGE_URI points at a shared backend.
"""

import math
import time
from datetime import UTC, datetime

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.responses import JSONResponse

from chatgateway.config import get_settings
from chatgateway.shared.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"

# ----- Rate Limits -----
# Usage: @limiter.limit(RATE_LIMIT_CHAT)

RATE_LIMIT_CHAT = "100/minute"  # Chat completions (each may fan out to search)


def get_client_ip(request: Request) -> str:
    """Best-effort client IP, honoring reverse proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def _get_rate_limit_key(request: Request) -> str:
    return f"chat:{get_client_ip(request)}"


def _create_limiter(storage_uri: str = "memory://") -> Limiter:
    """Create rate limiter with appropriate storage backend."""
    return Limiter(
        key_func=_get_rate_limit_key,
        storage_uri=storage_uri,
        strategy="fixed-window",
    )


limiter = _create_limiter(get_settings().rate_limit_storage_uri)


def _reset_timestamp(request: Request, exc: RateLimitExceeded) -> float:
    """Epoch seconds at which the exhausted window resets."""
    current_limit = getattr(request.state, "view_rate_limit", None)
    app_limiter = getattr(request.app.state, "limiter", None)
    if current_limit is not None and app_limiter is not None:
        reset_at, _ = app_limiter.limiter.get_window_stats(current_limit[0], *current_limit[1])
        return float(reset_at)
    return time.time() + exc.limit.limit.get_expiry()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Custom handler for rate limit exceeded errors."""
    reset_at = _reset_timestamp(request, exc)
    retry_after = max(0, math.ceil(reset_at - time.time()))

    logger.warning(
        "rate_limit_exceeded",
        path=request.url.path,
        method=request.method,
        key=_get_rate_limit_key(request),
        limit=str(exc.detail),
        retry_after=retry_after,
    )

    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests. Please try again later."},
        headers={
            "X-RateLimit-Limit": str(exc.limit.limit.amount),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": datetime.fromtimestamp(reset_at, tz=UTC).isoformat(),
            "Retry-After": str(retry_after),
        },
    )
