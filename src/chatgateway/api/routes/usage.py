"""Token usage and cost endpoint.

Reports what the process has recorded since it started. Only
non-streaming OpenRouter rounds carry usage, so streamed chats and local
models do not show up here.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from chatgateway.api.deps import get_usage_tracker
from chatgateway.infrastructure.llm import UsageTracker

router = APIRouter(prefix="/usage", tags=["usage"])


class UsageRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost_usd: float
    action: str
    timestamp: datetime


class DailyCost(BaseModel):
    date: str
    cost_usd: float


class UsageStatsResponse(BaseModel):
    total_cost_usd: float
    total_tokens: int
    request_count: int
    cost_by_model: dict[str, float]
    cost_by_day: list[DailyCost]
    avg_cost_per_request: float


class UsageResponse(BaseModel):
    stats: UsageStatsResponse
    records: list[UsageRecordResponse]


@router.get("", response_model=UsageResponse)
async def get_usage(
    limit: int = Query(default=100, ge=0, le=1000),
    usage_tracker: UsageTracker = Depends(get_usage_tracker),
) -> UsageResponse:
    """Usage statistics plus the most recent ``limit`` records, oldest first."""
    stats = usage_tracker.get_stats()
    return UsageResponse(
        stats=UsageStatsResponse(
            total_cost_usd=stats.total_cost_usd,
            total_tokens=stats.total_tokens,
            request_count=stats.request_count,
            cost_by_model=stats.cost_by_model,
            cost_by_day=[DailyCost(date=day, cost_usd=cost) for day, cost in stats.cost_by_day],
            avg_cost_per_request=stats.avg_cost_per_request,
        ),
        records=[
            UsageRecordResponse.model_validate(record)
            for record in usage_tracker.get_recent_records(limit)
        ],
    )
