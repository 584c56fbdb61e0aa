"""Model provider clients."""

from chatgateway.infrastructure.llm.lmstudio import LOCAL_MODEL_PREFIX, LMStudioClient
from chatgateway.infrastructure.llm.openrouter import OpenRouterClient
from chatgateway.infrastructure.llm.usage_tracker import UsageRecord, UsageStats, UsageTracker

__all__ = [
    "LOCAL_MODEL_PREFIX",
    "LMStudioClient",
    "OpenRouterClient",
    "UsageRecord",
    "UsageStats",
    "UsageTracker",
]
