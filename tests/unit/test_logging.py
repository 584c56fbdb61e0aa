"""Tests for logging helpers."""

import structlog

from chatgateway.shared.logging import bind_request_context, mask_secret, redact_secrets


class TestMaskSecret:
    def test_keeps_last_four(self):
        assert mask_secret("sk-or-v1-abcdef123456") == "***3456"

    def test_short_values_fully_hidden(self):
        assert mask_secret("tvly-1") == "***"


class TestRedactSecrets:
    def test_top_level_keys(self):
        event = {"event": "search", "api_key": "tvly-0123456789", "query": "weather"}

        result = redact_secrets(None, "info", event)

        assert result["api_key"] == "***6789"
        assert result["query"] == "weather"

    def test_nested_headers(self):
        event = {
            "event": "upstream_request",
            "headers": {"Authorization": "Bearer sk-or-v1-secretkey", "Accept": "*/*"},
        }

        result = redact_secrets(None, "info", event)

        assert result["headers"] == {"Authorization": "***tkey", "Accept": "*/*"}

    def test_empty_values_untouched(self):
        event = {"event": "x", "authorization": ""}

        assert redact_secrets(None, "info", event)["authorization"] == ""


class TestBindRequestContext:
    def test_replaces_previous_context(self):
        structlog.contextvars.bind_contextvars(stale="yes")

        request_id = bind_request_context(model="openai/gpt-4o", backend="remote")

        context = structlog.contextvars.get_contextvars()
        assert context == {
            "request_id": request_id,
            "model": "openai/gpt-4o",
            "backend": "remote",
        }
        assert len(request_id) == 12
        structlog.contextvars.clear_contextvars()
