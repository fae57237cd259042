"""
Usage accounting for outbound AI provider calls.

- cost_calculator: per-provider pricing tables and cost estimation in cents
- rate_limiter: per-user, per-service limits derived from the call ledger
- metering: context manager that checks limits and records each call
"""

from .cost_calculator import (
    calculate_anthropic_cost,
    calculate_cost,
    calculate_elevenlabs_cost,
    calculate_image_cost,
    calculate_meshy_cost,
    calculate_openai_cost,
    format_cost,
    get_pricing_info,
)
from .metering import MeteredCall, UsageMeter
from .models import RateLimits, RateLimitStatus, UsageStats
from .rate_limiter import DEFAULT_RATE_LIMITS, RateLimiter, RateLimitRegistry, rate_limit_registry

__all__ = [
    "DEFAULT_RATE_LIMITS",
    "MeteredCall",
    "RateLimitRegistry",
    "RateLimitStatus",
    "RateLimiter",
    "RateLimits",
    "UsageMeter",
    "UsageStats",
    "calculate_anthropic_cost",
    "calculate_cost",
    "calculate_elevenlabs_cost",
    "calculate_image_cost",
    "calculate_meshy_cost",
    "calculate_openai_cost",
    "format_cost",
    "get_pricing_info",
    "rate_limit_registry",
]
