"""Token usage and cost tracking for upstream completions."""

from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from chatgateway.observability.metrics import TOKENS_USED
from chatgateway.shared.logging import get_logger

logger = get_logger(__name__)


# OpenRouter pricing per 1M tokens in USD (November 2025)
MODEL_PRICING = {
    # OpenAI
    "openai/gpt-5-2025-08-07": {"input": 10.0, "output": 30.0},
    "openai/gpt-5-mini-2025-08-07": {"input": 0.30, "output": 1.20},
    "openai/gpt-4o": {"input": 2.50, "output": 10.0},
    "openai/gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "openai/gpt-4-turbo": {"input": 10.0, "output": 30.0},
    # Anthropic
    "anthropic/claude-4.5-sonnet-20250929": {"input": 3.0, "output": 15.0},
    "anthropic/claude-opus-4.1": {"input": 15.0, "output": 75.0},
    "anthropic/claude-3.5-sonnet": {"input": 3.0, "output": 15.0},
    "anthropic/claude-haiku-4.5": {"input": 0.80, "output": 4.0},
    # Google
    "google/gemini-2.5-pro": {"input": 1.25, "output": 5.0},
    "google/gemini-2.5-flash": {"input": 0.075, "output": 0.30},
    "google/gemini-2.5-flash-lite": {"input": 0.02, "output": 0.08},
    # xAI
    "x-ai/grok-4": {"input": 3.0, "output": 15.0},
    "x-ai/grok-4-fast": {"input": 0.60, "output": 2.0},
    # DeepSeek
    "deepseek/deepseek-chat": {"input": 0.14, "output": 0.28},
    "deepseek/deepseek-r1": {"input": 0.55, "output": 2.19},
    # Meta
    "meta-llama/llama-3.1-70b-instruct": {"input": 0.52, "output": 0.75},
    "meta-llama/llama-3.1-8b-instruct": {"input": 0.055, "output": 0.055},
}
DEFAULT_PRICING = {"input": 5.00, "output": 15.00}


@dataclass
class UsageRecord:
    """Token usage of one upstream call."""

    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost_usd: float
    action: str
    timestamp: datetime


@dataclass
class UsageStats:
    """Aggregates over the tracked history."""

    total_cost_usd: float
    total_tokens: int
    request_count: int
    cost_by_model: dict[str, float]
    cost_by_day: list[tuple[str, float]]
    avg_cost_per_request: float


class UsageTracker:
    """Tracks completion usage and costs.

    Local models are free and never priced.
    """

    def __init__(self) -> None:
        # Bounded history for long-running processes
        self._buffer: deque[UsageRecord] = deque(maxlen=1_000)

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Calculate cost in USD for token usage."""
        if model.startswith("local/"):
            return 0.0

        # OpenRouter suffixes free variants with ":free"
        if model.endswith(":free"):
            return 0.0

        pricing = MODEL_PRICING.get(model)
        if not pricing:
            logger.debug("unknown_model_pricing", model=model)
            pricing = DEFAULT_PRICING

        input_cost = (input_tokens / 1_000_000) * pricing["input"]
        output_cost = (output_tokens / 1_000_000) * pricing["output"]
        return input_cost + output_cost

    def record(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int,
        action: str,
    ) -> UsageRecord:
        cost_usd = self.calculate_cost(model, input_tokens, output_tokens)
        record = UsageRecord(
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cost_usd=cost_usd,
            action=action,
            timestamp=datetime.now(UTC),
        )

        logger.debug(
            "ai_usage_recorded",
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=round(cost_usd, 6),
            action=action,
        )

        TOKENS_USED.labels(direction="input").inc(input_tokens)
        TOKENS_USED.labels(direction="output").inc(output_tokens)
        self._buffer.append(record)
        return record

    def record_completion(self, payload: dict[str, Any], action: str) -> UsageRecord | None:
        """Record the ``usage`` block of a chat-completion payload, if any."""
        usage = payload.get("usage")
        if not isinstance(usage, dict):
            return None
        return self.record(
            model=str(payload.get("model") or "unknown"),
            input_tokens=int(usage.get("prompt_tokens") or 0),
            output_tokens=int(usage.get("completion_tokens") or 0),
            action=action,
        )

    def get_recent_records(self, limit: int = 100) -> list[UsageRecord]:
        if limit <= 0:
            return []
        return list(self._buffer)[-limit:]

    def total_cost(self) -> float:
        return sum(record.cost_usd for record in self._buffer)

    def get_stats(self) -> UsageStats:
        """Totals, per-model cost and per-day cost (UTC dates, ascending)."""
        records = list(self._buffer)
        total_cost = sum(record.cost_usd for record in records)

        cost_by_model: dict[str, float] = defaultdict(float)
        cost_by_day: dict[str, float] = defaultdict(float)
        for record in records:
            cost_by_model[record.model] += record.cost_usd
            cost_by_day[record.timestamp.date().isoformat()] += record.cost_usd

        return UsageStats(
            total_cost_usd=total_cost,
            total_tokens=sum(record.total_tokens for record in records),
            request_count=len(records),
            cost_by_model=dict(cost_by_model),
            cost_by_day=sorted(cost_by_day.items()),
            avg_cost_per_request=total_cost / len(records) if records else 0.0,
        )
