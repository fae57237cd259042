"""
Rate limiting for outbound AI provider calls.

Usage counters are derived from the ``ai_service_calls`` ledger on every
check, so they stay consistent across processes without any in-memory state.
The hourly window slides over the last 60 minutes; the daily window is the
current UTC calendar day.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from forgekit.core.database.base import utc_now
from forgekit.core.database.entities.ai_service_calls import AIServiceCall
from forgekit.core.database.repositories.ai_service_calls import AIServiceCallRepository
from forgekit.core.logging_config import get_logger
from forgekit.core.monitoring import log_ai_service_call
from forgekit.server.core.config import settings

from .cost_calculator import format_cost
from .models import (
    RateLimitOverride,
    RateLimits,
    RateLimitStatus,
    ResetTimes,
    UsageCounters,
    UsageStats,
)

logger = get_logger(__name__)

DEFAULT_RATE_LIMITS: Dict[str, RateLimits] = {
    "openai": RateLimits(
        max_calls_per_hour=100,
        max_calls_per_day=1000,
        max_tokens_per_day=1_000_000,
        max_cost_per_day=10000,  # $100
    ),
    "anthropic": RateLimits(
        max_calls_per_hour=100,
        max_calls_per_day=1000,
        max_tokens_per_day=1_000_000,
        max_cost_per_day=10000,  # $100
    ),
    "meshy": RateLimits(
        max_calls_per_hour=20,
        max_calls_per_day=100,
        max_tokens_per_day=0,  # not token based
        max_cost_per_day=5000,  # $50
    ),
    "elevenlabs": RateLimits(
        max_calls_per_hour=50,
        max_calls_per_day=500,
        max_tokens_per_day=0,  # not token based
        max_cost_per_day=5000,  # $50
    ),
}
FALLBACK_SERVICE = "openai"


def normalize_service(service: str) -> str:
    return service.strip().lower()


class RateLimitRegistry:
    """Process-local table of effective limits per service.

    Starts from :data:`DEFAULT_RATE_LIMITS` and applies configured overrides.
    Admin updates through :meth:`set_custom_limits` are visible to every
    :class:`RateLimiter` sharing the registry.
    """

    def __init__(self, overrides: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._limits: Dict[str, RateLimits] = {}
        self.reset()
        for service, partial in (overrides or {}).items():
            self.set_custom_limits(service, **partial)

    def reset(self) -> None:
        """Drop all custom limits and go back to the defaults."""
        self._limits = {name: limits.model_copy() for name, limits in DEFAULT_RATE_LIMITS.items()}

    def limits_for(self, service: str) -> RateLimits:
        name = normalize_service(service)
        return self._limits.get(name) or self._limits[FALLBACK_SERVICE]

    def set_custom_limits(self, service: str, **partial: Any) -> RateLimits:
        """Merge a partial override over the current limits of ``service``.

        Raises:
            pydantic.ValidationError: If a field is unknown or negative
        """
        override = RateLimitOverride.model_validate(partial)
        merged = self.limits_for(service).model_copy(update=override.model_dump(exclude_none=True))
        name = normalize_service(service)
        self._limits[name] = merged
        logger.info(f"Custom rate limits set for {name}: {merged.model_dump()}")
        return merged


rate_limit_registry = RateLimitRegistry(settings.rate_limit_overrides)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class RateLimiter:
    """
    Checks and records usage of external AI services per user.

    Args:
        repository: Ledger repository bound to the current session
        registry: Effective limits; defaults to the process-wide registry
    """

    def __init__(self, repository: AIServiceCallRepository, registry: Optional[RateLimitRegistry] = None) -> None:
        self.repository = repository
        self.registry = registry or rate_limit_registry

    def limits_for(self, service: str) -> RateLimits:
        return self.registry.limits_for(service)

    def set_custom_limits(self, service: str, **partial: Any) -> RateLimits:
        return self.registry.set_custom_limits(service, **partial)

    async def check(self, user_id: str, service: str, now: Optional[datetime] = None) -> RateLimitStatus:
        """
        Check whether ``user_id`` may call ``service`` right now.

        Limits are evaluated in order (hourly calls, daily calls, daily tokens,
        daily cost) and the first exhausted one decides the reason. A limit is
        exhausted once the current usage reaches it.

        Args:
            user_id: Caller identifier
            service: Service name, case-insensitive
            now: Evaluation instant, defaults to the current UTC time

        Returns:
            RateLimitStatus with the current counters, limits and reset times
        """
        name = normalize_service(service)
        limits = self.limits_for(name)
        now = _as_utc(now) if now is not None else utc_now()

        hour_ago = now - timedelta(hours=1)
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

        current = UsageCounters(
            calls_this_hour=await self.repository.count_since(user_id, name, hour_ago, now),
            calls_today=await self.repository.count_since(user_id, name, day_start, now),
            tokens_today=await self.repository.sum_tokens_since(user_id, name, day_start, now),
            cost_today=await self.repository.sum_cost_since(user_id, name, day_start, now),
        )
        reset_at = ResetTimes(
            hourly=now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1),
            daily=day_start + timedelta(days=1),
        )

        reason: Optional[str] = None
        if current.calls_this_hour >= limits.max_calls_per_hour:
            reason = f"Hourly call limit exceeded ({limits.max_calls_per_hour} calls per hour)"
        elif current.calls_today >= limits.max_calls_per_day:
            reason = f"Daily call limit exceeded ({limits.max_calls_per_day} calls per day)"
        elif limits.max_tokens_per_day > 0 and current.tokens_today >= limits.max_tokens_per_day:
            reason = f"Daily token limit exceeded ({limits.max_tokens_per_day} tokens per day)"
        elif current.cost_today >= limits.max_cost_per_day:
            reason = f"Daily cost limit exceeded ({format_cost(limits.max_cost_per_day)} per day)"

        if reason:
            logger.info(f"Rate limit hit for user={user_id} service={name}: {reason}")

        return RateLimitStatus(
            allowed=reason is None,
            reason=reason,
            current=current,
            limits=limits,
            reset_at=reset_at,
        )

    async def record(
        self,
        user_id: str,
        service: str,
        endpoint: str,
        status: str,
        model: Optional[str] = None,
        request_data: Optional[Dict[str, Any]] = None,
        response_data: Optional[Dict[str, Any]] = None,
        tokens_used: Optional[int] = None,
        cost: Optional[int] = None,
        duration_ms: Optional[int] = None,
        error: Optional[str] = None,
    ) -> AIServiceCall:
        """Append one call to the usage ledger."""
        name = normalize_service(service)
        call = AIServiceCall(
            user_id=user_id,
            service=name,
            endpoint=endpoint,
            model=model,
            request_data=request_data or {},
            response_data=response_data or {},
            tokens_used=tokens_used,
            cost=cost,
            duration_ms=duration_ms,
            status=status,
            error=error,
        )
        saved = await self.repository.append(call)
        log_ai_service_call(name, endpoint, status, tokens_used=tokens_used, cost_cents=cost)
        return saved

    async def stats(
        self,
        user_id: str,
        service: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> UsageStats:
        """Aggregate usage of a user, optionally per service and time range."""
        name = normalize_service(service) if service else None
        row = await self.repository.usage_stats(user_id, name, start, end)
        return UsageStats(**row)
