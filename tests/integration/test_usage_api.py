"""Integration tests for GET /api/usage."""

import pytest

from chatgateway.infrastructure.llm import UsageTracker


@pytest.fixture
def usage_tracker(app) -> UsageTracker:
    tracker = UsageTracker()
    app.state.usage_tracker = tracker
    return tracker


class TestUsageEndpoint:
    @pytest.mark.asyncio
    async def test_empty_history(self, api_client, usage_tracker):
        async with api_client() as client:
            response = await client.get("/api/usage")

        assert response.status_code == 200
        assert response.json() == {
            "stats": {
                "total_cost_usd": 0.0,
                "total_tokens": 0,
                "request_count": 0,
                "cost_by_model": {},
                "cost_by_day": [],
                "avg_cost_per_request": 0.0,
            },
            "records": [],
        }

    @pytest.mark.asyncio
    async def test_recent_records_and_totals(self, api_client, usage_tracker):
        usage_tracker.record("openai/gpt-4o", 1_000_000, 0, "chat_completion")
        usage_tracker.record("openai/gpt-4o-mini", 10, 20, "chat_tool_followup")

        async with api_client() as client:
            response = await client.get("/api/usage", params={"limit": 1})

        payload = response.json()
        assert payload["stats"]["request_count"] == 2
        assert payload["stats"]["total_cost_usd"] == pytest.approx(2.5 + 0.0000135)
        assert set(payload["stats"]["cost_by_model"]) == {"openai/gpt-4o", "openai/gpt-4o-mini"}
        assert len(payload["stats"]["cost_by_day"]) == 1

        [record] = payload["records"]
        assert record["model"] == "openai/gpt-4o-mini"
        assert record["action"] == "chat_tool_followup"
        assert record["total_tokens"] == 30

    @pytest.mark.asyncio
    async def test_limit_is_validated(self, api_client, usage_tracker):
        async with api_client() as client:
            response = await client.get("/api/usage", params={"limit": -1})

        assert response.status_code == 422
