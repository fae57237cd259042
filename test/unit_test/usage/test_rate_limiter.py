"""
Unit tests for the rate limiter.

Tests run against an in-memory SQLite ledger and cover:
- Hourly (sliding) and daily (UTC calendar day) windows
- Evaluation order of the limits and their rejection reasons
- Services without a token limit
- Reset times
- Per-user and per-service isolation
- Recording calls and aggregating usage statistics
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import patch

import pytest
from sqlmodel.ext.asyncio.session import AsyncSession

from forgekit.core.database.entities.ai_service_calls import AIServiceCall
from forgekit.core.database.repositories import AIServiceCallRepository
from forgekit.usage.rate_limiter import RateLimiter, RateLimitRegistry

pytestmark = pytest.mark.asyncio

NOW = datetime(2026, 10, 16, 13, 45, tzinfo=timezone.utc)


@pytest.fixture
def repository(session: AsyncSession) -> AIServiceCallRepository:
    return AIServiceCallRepository(session)


@pytest.fixture
def registry() -> RateLimitRegistry:
    return RateLimitRegistry()


@pytest.fixture
def limiter(repository, registry) -> RateLimiter:
    return RateLimiter(repository, registry)


async def add_call(
    repository: AIServiceCallRepository,
    created_at: datetime,
    user_id: str = "user-1",
    service: str = "openai",
    tokens_used: Optional[int] = None,
    cost: Optional[int] = None,
    status: str = "success",
) -> AIServiceCall:
    return await repository.append(
        AIServiceCall(
            user_id=user_id,
            service=service,
            endpoint="/chat/completions",
            tokens_used=tokens_used,
            cost=cost,
            status=status,
            created_at=created_at,
        )
    )


class TestRateLimitCheck:
    """Test limit evaluation against the ledger."""

    async def test_allows_fresh_user(self, limiter):
        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.allowed is True
        assert status.reason is None
        assert status.current.calls_this_hour == 0
        assert status.current.calls_today == 0
        assert status.limits.max_calls_per_hour == 100

    async def test_hourly_limit_exceeded(self, limiter, repository):
        limiter.set_custom_limits("openai", max_calls_per_hour=2)
        await add_call(repository, NOW - timedelta(minutes=35))
        await add_call(repository, NOW - timedelta(minutes=15))

        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.allowed is False
        assert status.reason == "Hourly call limit exceeded (2 calls per hour)"
        assert status.current.calls_this_hour == 2

    async def test_hourly_window_slides(self, limiter, repository):
        limiter.set_custom_limits("openai", max_calls_per_hour=1)
        await add_call(repository, NOW - timedelta(minutes=61))

        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.allowed is True
        assert status.current.calls_this_hour == 0
        assert status.current.calls_today == 1

    async def test_daily_limit_exceeded(self, limiter, repository):
        limiter.set_custom_limits("openai", max_calls_per_day=3)
        for hour in (1, 5, 9):
            await add_call(repository, NOW.replace(hour=hour, minute=0))

        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.allowed is False
        assert status.reason == "Daily call limit exceeded (3 calls per day)"

    async def test_daily_window_starts_at_utc_midnight(self, limiter, repository):
        limiter.set_custom_limits("openai", max_calls_per_day=1)
        await add_call(repository, datetime(2026, 10, 15, 23, 59, tzinfo=timezone.utc))

        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.allowed is True
        assert status.current.calls_today == 0

    async def test_calls_after_now_are_not_counted(self, limiter, repository):
        limiter.set_custom_limits("openai", max_calls_per_hour=1)
        await add_call(repository, NOW + timedelta(minutes=10), tokens_used=500, cost=7)

        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.allowed is True
        assert status.current.calls_this_hour == 0
        assert status.current.calls_today == 0
        assert status.current.tokens_today == 0
        assert status.current.cost_today == 0

    async def test_daily_token_limit_exceeded(self, limiter, repository):
        await add_call(repository, NOW - timedelta(hours=3), tokens_used=600_000)
        await add_call(repository, NOW - timedelta(hours=2), tokens_used=400_000)

        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.allowed is False
        assert status.reason == "Daily token limit exceeded (1000000 tokens per day)"
        assert status.current.tokens_today == 1_000_000

    async def test_token_limit_zero_means_unlimited(self, limiter, repository):
        await add_call(repository, NOW - timedelta(hours=2), service="meshy", tokens_used=50_000_000, cost=10)

        status = await limiter.check("user-1", "meshy", now=NOW)

        assert status.allowed is True
        assert status.limits.max_tokens_per_day == 0

    async def test_daily_cost_limit_exceeded(self, limiter, repository):
        await add_call(repository, NOW - timedelta(hours=2), cost=10_000)

        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.allowed is False
        assert status.reason == "Daily cost limit exceeded ($100.00 per day)"
        assert status.current.cost_today == 10_000

    async def test_first_exhausted_limit_decides_reason(self, limiter, repository):
        limiter.set_custom_limits("openai", max_calls_per_hour=1, max_calls_per_day=1)
        await add_call(repository, NOW - timedelta(minutes=5), cost=20_000)

        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.reason == "Hourly call limit exceeded (1 calls per hour)"

    async def test_zero_limit_rejects_immediately(self, limiter):
        limiter.set_custom_limits("elevenlabs", max_calls_per_hour=0)

        status = await limiter.check("user-1", "elevenlabs", now=NOW)

        assert status.allowed is False

    async def test_reset_times(self, limiter):
        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.reset_at.hourly == datetime(2026, 10, 16, 14, 0, tzinfo=timezone.utc)
        assert status.reset_at.daily == datetime(2026, 10, 17, 0, 0, tzinfo=timezone.utc)

    async def test_naive_now_is_treated_as_utc(self, limiter):
        status = await limiter.check("user-1", "openai", now=NOW.replace(tzinfo=None))

        assert status.reset_at.hourly == datetime(2026, 10, 16, 14, 0, tzinfo=timezone.utc)

    async def test_counters_are_per_user(self, limiter, repository):
        limiter.set_custom_limits("openai", max_calls_per_hour=1)
        await add_call(repository, NOW - timedelta(minutes=5), user_id="someone-else")

        status = await limiter.check("user-1", "openai", now=NOW)

        assert status.allowed is True

    async def test_counters_are_per_service(self, limiter, repository):
        limiter.set_custom_limits("anthropic", max_calls_per_hour=1)
        await add_call(repository, NOW - timedelta(minutes=5), service="openai")

        status = await limiter.check("user-1", "anthropic", now=NOW)

        assert status.allowed is True

    async def test_service_name_is_case_insensitive(self, limiter, repository):
        limiter.set_custom_limits("openai", max_calls_per_hour=1)
        await add_call(repository, NOW - timedelta(minutes=5))

        status = await limiter.check("user-1", "OpenAI", now=NOW)

        assert status.allowed is False

    async def test_unknown_service_uses_openai_limits(self, limiter):
        status = await limiter.check("user-1", "stability", now=NOW)

        assert status.limits == limiter.limits_for("openai")


class TestRecord:
    """Test appending calls to the ledger."""

    async def test_record_appends_row(self, limiter, repository):
        with patch("forgekit.usage.rate_limiter.log_ai_service_call") as mock_log:
            call = await limiter.record(
                "user-1",
                "OpenAI",
                "/embeddings",
                "success",
                model="text-embedding-3-small",
                request_data={"text": "hello"},
                tokens_used=12,
                cost=1,
                duration_ms=40,
            )

        assert call.id
        assert call.service == "openai"
        assert call.request_data == {"text": "hello"}
        assert call.response_data == {}
        mock_log.assert_called_once_with("openai", "/embeddings", "success", tokens_used=12, cost_cents=1)

        stored = await repository.get_by_id(call.id)
        assert stored is not None
        assert stored.tokens_used == 12

    async def test_recorded_calls_count_towards_limits(self, limiter):
        limiter.set_custom_limits("openai", max_calls_per_hour=1)
        await limiter.record("user-1", "openai", "/chat/completions", "error", error="boom")

        status = await limiter.check("user-1", "openai")

        assert status.allowed is False
        assert status.current.calls_this_hour == 1


class TestStats:
    """Test usage aggregation."""

    async def test_stats_aggregate_calls(self, limiter, repository):
        await add_call(repository, NOW - timedelta(hours=1), tokens_used=100, cost=2, status="success")
        await add_call(repository, NOW - timedelta(hours=1), tokens_used=50, cost=1, status="success")
        await add_call(repository, NOW - timedelta(hours=1), status="error")
        await add_call(repository, NOW - timedelta(hours=1), status="timeout")
        await add_call(repository, NOW - timedelta(hours=1), service="meshy", cost=15)

        stats = await limiter.stats("user-1", "openai")

        assert stats.total_calls == 4
        assert stats.successful_calls == 2
        assert stats.failed_calls == 1
        assert stats.total_tokens == 150
        assert stats.total_cost == 3

    async def test_stats_without_service_cover_everything(self, limiter, repository):
        await add_call(repository, NOW, cost=2)
        await add_call(repository, NOW, service="meshy", cost=15)

        stats = await limiter.stats("user-1")

        assert stats.total_calls == 2
        assert stats.total_cost == 17

    async def test_stats_date_range(self, limiter, repository):
        await add_call(repository, NOW - timedelta(days=2), cost=5)
        await add_call(repository, NOW, cost=7)

        stats = await limiter.stats("user-1", start=NOW - timedelta(hours=1), end=NOW + timedelta(hours=1))

        assert stats.total_calls == 1
        assert stats.total_cost == 7

    async def test_stats_for_unknown_user_are_zero(self, limiter):
        stats = await limiter.stats("nobody")

        assert stats.total_calls == 0
        assert stats.average_duration == 0
