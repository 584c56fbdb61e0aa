"""Application configuration using Pydantic Settings."""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGIN = "http://localhost:3000"
DEFAULT_LM_STUDIO_ENDPOINT = "http://localhost:1234/v1"
SECRET_FILE_ENV_VARS = (
    "OPENROUTER_API_KEY",
    "TAVILY_API_KEY",
    "SERPER_API_KEY",
    "EXA_API_KEY",
)


def _load_secret_file_env_vars() -> None:
    """Allow secrets to be sourced from *_FILE env vars (Docker secrets)."""
    for env_var in SECRET_FILE_ENV_VARS:
        file_var = f"{env_var}_FILE"
        file_path = os.getenv(file_var)
        if not file_path:
            continue
        try:
            value = Path(file_path).read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise RuntimeError(f"Failed to read {file_var} at {file_path}") from exc
        if not value:
            raise ValueError(f"{file_var} is empty")
        os.environ[env_var] = value


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ----- Application -----
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False
    # Overrides the debug-derived level, e.g. "WARNING"
    log_level: str | None = None
    # Force JSON log lines even in development
    log_json: bool = False

    # ----- Remote backend (OpenRouter) -----
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    # Attribution headers sent with every OpenRouter request
    public_app_url: str = DEFAULT_CORS_ORIGIN
    app_title: str = "Chameleon AI Chat"

    # ----- Local backend (LM Studio) -----
    lm_studio_endpoint: str = DEFAULT_LM_STUDIO_ENDPOINT
    lm_studio_models_timeout_seconds: float = 5.0

    # ----- Upstream calls -----
    # None means no timeout: a hung upstream keeps the request open.
    upstream_timeout_seconds: float | None = None

    # ----- Search proxy routes -----
    # Server keys win over the x-<provider>-api-key request headers
    tavily_api_key: str = ""
    serper_api_key: str = ""
    exa_api_key: str = ""

    # ----- Tools -----
    search_cache_ttl_seconds: float = 300.0
    tool_concurrency: int = Field(default=4, ge=1, le=16)

    # ----- Rate limiting -----
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"

    # ----- CORS -----
    # Can be set as JSON list or comma-separated string
    cors_origins_str: str = Field(default=DEFAULT_CORS_ORIGIN, alias="cors_origins")

    @property
    def cors_origins(self) -> list[str]:
        """Parse cors_origins from comma-separated string or JSON list."""
        v = self.cors_origins_str
        if not v:
            return [DEFAULT_CORS_ORIGIN]
        if v.startswith("["):
            raw = json.loads(v)
            if not isinstance(raw, list) or not all(isinstance(origin, str) for origin in raw):
                raise ValueError("CORS_ORIGINS must be a JSON list of strings")
            return raw
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Ensure secure settings in production environment."""
        if self.is_production:
            if self.app_debug:
                raise ValueError("APP_DEBUG must be false in production!")
            if any(origin in {"*", DEFAULT_CORS_ORIGIN} for origin in self.cors_origins):
                raise ValueError("CORS_ORIGINS must be restricted in production!")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    _load_secret_file_env_vars()
    return Settings()
