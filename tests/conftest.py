"""
Pytest configuration and fixtures for chatgateway tests.
"""
from collections.abc import Callable, Iterator

import httpx
import pytest
from fastapi import FastAPI

from chatgateway.api.ratelimit import limiter
from chatgateway.config import get_settings
from chatgateway.infrastructure.search import SearchCache

Handler = Callable[[httpx.Request], httpx.Response]

# Environment that would leak into Settings() from the developer's shell
_SETTINGS_ENV_VARS = (
    "APP_ENV",
    "APP_DEBUG",
    "LOG_LEVEL",
    "LOG_JSON",
    "OPENROUTER_API_KEY",
    "OPENROUTER_API_KEY_FILE",
    "TAVILY_API_KEY",
    "SERPER_API_KEY",
    "EXA_API_KEY",
    "OPENROUTER_BASE_URL",
    "LM_STUDIO_ENDPOINT",
    "CORS_ORIGINS",
    "RATE_LIMIT_ENABLED",
    "UPSTREAM_TIMEOUT_SECONDS",
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start every test from default settings."""
    for var in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_rate_limits() -> Iterator[None]:
    """The limiter is process-wide; counters must not leak between tests."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def search_cache(fake_clock: FakeClock) -> SearchCache:
    return SearchCache(ttl_seconds=300, clock=fake_clock)


@pytest.fixture
def mock_http_client() -> Callable[[Handler], httpx.AsyncClient]:
    """Factory for an AsyncClient answered by ``handler``."""

    def _factory(handler: Handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _factory


@pytest.fixture
def app() -> FastAPI:
    from chatgateway.main import create_app

    return create_app()


@pytest.fixture
def api_client(app: FastAPI) -> Callable[[], httpx.AsyncClient]:
    """Factory for an in-process client talking to ``app``."""

    def _factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://testserver",
        )

    return _factory
