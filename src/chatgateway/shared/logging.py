"""Structured logging configuration.

Gateway logs carry upstream credentials in a few places (request
headers, search provider bodies). Every event passes through
:func:`redact_secrets` before rendering so keys never reach the log sink.
"""

import logging
import sys
import uuid
from collections.abc import MutableMapping
from typing import Any, cast

import structlog

from chatgateway.config import get_settings

SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "apikey",
        "authorization",
        "search_api_key",
        "x-api-key",
        "x-openrouter-api-key",
    }
)
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def mask_secret(value: str) -> str:
    """Keep only the last four characters of a credential."""
    if len(value) <= 8:
        return "***"
    return f"***{value[-4:]}"


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking credential-looking fields, one level deep."""
    _ = (logger, method_name)
    for key, value in list(event_dict.items()):
        if isinstance(value, dict):
            event_dict[key] = {
                k: mask_secret(str(v)) if k.lower() in SENSITIVE_KEYS and v else v
                for k, v in value.items()
            }
        elif key.lower() in SENSITIVE_KEYS and value:
            event_dict[key] = mask_secret(str(value))
    return event_dict


def bind_request_context(**values: Any) -> str:
    """Start a fresh logging context for one gateway request.

    Returns the generated request id so callers can echo it back.
    """
    request_id = uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **values)
    return request_id


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger."""
    settings = get_settings()

    if settings.log_level:
        log_level = logging.getLevelName(settings.log_level.upper())
    else:
        log_level = logging.DEBUG if settings.app_debug else logging.INFO

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development and not settings.log_json:
        renderer: list[Any] = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    else:
        renderer = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    # Upstream request logs are noisy while streaming
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
