"""Pydantic schemas for the usage-accounting domain."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """
    Base Pydantic model for usage schemas.

    - ``populate_by_name=True``: Allow initialization by alias or field name.
    - ``extra="forbid"``: Prevent unknown fields from slipping into the model.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class RateLimits(BaseSchema):
    """Per-service limits. A token limit of 0 means tokens are not limited."""

    max_calls_per_hour: int = Field(ge=0)
    max_calls_per_day: int = Field(ge=0)
    max_tokens_per_day: int = Field(ge=0)
    # US cents
    max_cost_per_day: int = Field(ge=0)


class RateLimitOverride(BaseSchema):
    """Partial override merged over the current limits of a service."""

    max_calls_per_hour: Optional[int] = Field(default=None, ge=0)
    max_calls_per_day: Optional[int] = Field(default=None, ge=0)
    max_tokens_per_day: Optional[int] = Field(default=None, ge=0)
    max_cost_per_day: Optional[int] = Field(default=None, ge=0)


class UsageCounters(BaseSchema):
    calls_this_hour: int = 0
    calls_today: int = 0
    tokens_today: int = 0
    cost_today: int = 0


class ResetTimes(BaseSchema):
    hourly: datetime
    daily: datetime


class RateLimitStatus(BaseSchema):
    """Outcome of a rate-limit check for one (user, service) pair."""

    allowed: bool
    reason: Optional[str] = None
    current: UsageCounters
    limits: RateLimits
    reset_at: ResetTimes


class UsageStats(BaseSchema):
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    total_tokens: int = 0
    total_cost: int = 0
    average_duration: int = 0


class ServiceCost(BaseSchema):
    service: str
    total_calls: int
    total_cost: int
    total_cost_formatted: str
    total_tokens: int


class CostTotals(BaseSchema):
    calls: int
    cost: int
    cost_formatted: str


class CostBreakdown(BaseSchema):
    costs: list[ServiceCost]
    total: CostTotals
