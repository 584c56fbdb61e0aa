"""Prometheus instrumentation for the gateway.

HTTP-level metrics come from a middleware; the tool loop, search executor,
upstream clients and usage tracker increment the domain counters directly.
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.responses import Response
from starlette.routing import Match

METRICS_PATH = "/metrics"

REQUEST_COUNT = Counter(
    "chatgateway_http_requests_total",
    "HTTP requests by route and status",
    ["method", "path", "status_code"],
)
# SSE bodies keep streaming after call_next returns, so this is time to headers
REQUEST_LATENCY = Histogram(
    "chatgateway_http_request_duration_seconds",
    "Time until response headers are sent, in seconds",
    ["method", "path"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)
REQUEST_IN_PROGRESS = Gauge(
    "chatgateway_http_requests_in_progress",
    "Requests waiting for response headers",
    ["method"],
)
UPSTREAM_ERRORS = Counter(
    "chatgateway_upstream_errors_total",
    "Non-2xx answers from OpenRouter or LM Studio",
    ["backend", "status_code"],
)
TOOL_CALLS = Counter(
    "chatgateway_tool_calls_total",
    "Tool calls executed on behalf of the model",
    ["tool", "outcome"],
)
SEARCH_REQUESTS = Counter(
    "chatgateway_search_requests_total",
    "Web search lookups by provider and result",
    ["provider", "result"],
)
TOKENS_USED = Counter(
    "chatgateway_tokens_total",
    "Tokens reported in completion usage blocks",
    ["direction"],
)


def route_template(request: Request) -> str:
    """Path template of the matched route, so ids never become label values."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if isinstance(path, str) and path:
        return path
    for candidate in request.app.router.routes:
        match, _ = candidate.matches(request.scope)
        if match is Match.FULL:
            return str(getattr(candidate, "path", "unknown"))
    return "unknown"


def setup_metrics(app: FastAPI) -> None:
    """Attach the metrics middleware and the scrape endpoint."""

    @app.middleware("http")
    async def metrics_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        method = request.method
        status_code = "500"
        REQUEST_IN_PROGRESS.labels(method=method).inc()
        start = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            path = route_template(request)
            REQUEST_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - start)
            REQUEST_COUNT.labels(method=method, path=path, status_code=status_code).inc()
            REQUEST_IN_PROGRESS.labels(method=method).dec()

    @app.get(METRICS_PATH, include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
