"""Unit tests for the AI service call ledger repository.

Runs against in-memory SQLite to verify the windowed counters and aggregates
that the rate limiter and the usage endpoints depend on.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from forgekit.core.database.entities.ai_service_calls import AIServiceCall
from forgekit.core.database.repositories.ai_service_calls import AIServiceCallRepository

pytestmark = pytest.mark.asyncio

BASE = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def make_call(**overrides) -> AIServiceCall:
    values = {
        "user_id": "user-1",
        "service": "openai",
        "endpoint": "/embeddings",
        "status": "success",
        "created_at": BASE,
    }
    values.update(overrides)
    return AIServiceCall(**values)


class TestAIServiceCallRepository:
    """Tests for AIServiceCallRepository operations."""

    @pytest.fixture
    def repository(self, session):
        return AIServiceCallRepository(session)

    async def test_append_assigns_id(self, repository):
        call = await repository.append(make_call(model="text-embedding-3-small"))

        assert call.id
        fetched = await repository.get_by_id(call.id)
        assert fetched is not None
        assert fetched.model == "text-embedding-3-small"
        assert fetched.request_data == {}

    async def test_get_by_id_not_found(self, repository):
        assert await repository.get_by_id("missing") is None

    async def test_list_paginates_newest_first(self, repository):
        for minutes in range(4):
            await repository.append(make_call(endpoint=f"/call/{minutes}", created_at=BASE + timedelta(minutes=minutes)))

        page = await repository.list(limit=2, offset=1)

        assert [call.endpoint for call in page] == ["/call/2", "/call/1"]

    async def test_list_ignores_unknown_and_empty_filters(self, repository):
        await repository.append(make_call())
        await repository.append(make_call(user_id="user-2"))

        calls = await repository.list(filters={"user_id": "user-2", "service": None, "nonexistent": "x"})

        assert [call.user_id for call in calls] == ["user-2"]

    async def test_count_since(self, repository):
        await repository.append(make_call(created_at=BASE - timedelta(hours=2)))
        await repository.append(make_call(created_at=BASE - timedelta(minutes=30)))
        await repository.append(make_call(created_at=BASE))
        await repository.append(make_call(service="meshy"))
        await repository.append(make_call(user_id="user-2"))

        assert await repository.count_since("user-1", "openai", BASE - timedelta(hours=1)) == 2
        assert await repository.count_since("user-1", "openai", BASE - timedelta(days=1)) == 3
        assert await repository.count_since("user-1", "anthropic", BASE - timedelta(days=1)) == 0

    async def test_since_is_inclusive(self, repository):
        await repository.append(make_call(created_at=BASE))

        assert await repository.count_since("user-1", "openai", BASE) == 1

    async def test_sums_treat_missing_values_as_zero(self, repository):
        await repository.append(make_call(tokens_used=100, cost=3))
        await repository.append(make_call(tokens_used=None, cost=None, status="error"))

        assert await repository.sum_tokens_since("user-1", "openai", BASE - timedelta(hours=1)) == 100
        assert await repository.sum_cost_since("user-1", "openai", BASE - timedelta(hours=1)) == 3

    async def test_until_bounds_the_window(self, repository):
        await repository.append(make_call(tokens_used=10, cost=1))
        await repository.append(make_call(tokens_used=20, cost=2, created_at=BASE + timedelta(minutes=30)))

        since = BASE - timedelta(hours=1)
        assert await repository.count_since("user-1", "openai", since, until=BASE) == 1
        assert await repository.sum_tokens_since("user-1", "openai", since, until=BASE) == 10
        assert await repository.sum_cost_since("user-1", "openai", since, until=BASE) == 1
        assert await repository.count_since("user-1", "openai", since) == 2

    async def test_sums_without_rows(self, repository):
        assert await repository.sum_tokens_since("user-1", "openai", BASE) == 0
        assert await repository.sum_cost_since("user-1", "openai", BASE) == 0

    async def test_usage_stats(self, repository):
        await repository.append(make_call(tokens_used=10, cost=1, duration_ms=100))
        await repository.append(make_call(tokens_used=20, cost=2, duration_ms=201))
        await repository.append(make_call(status="error", duration_ms=300))

        stats = await repository.usage_stats("user-1")

        assert stats == {
            "total_calls": 3,
            "successful_calls": 2,
            "failed_calls": 1,
            "total_tokens": 30,
            "total_cost": 3,
            "average_duration": 200,
        }

    async def test_cost_breakdown_groups_by_service(self, repository):
        await repository.append(make_call(service="openai", cost=2, tokens_used=100))
        await repository.append(make_call(service="openai", cost=3, tokens_used=50))
        await repository.append(make_call(service="elevenlabs", cost=30))

        rows = await repository.cost_breakdown("user-1")

        assert rows == [
            {"service": "elevenlabs", "total_calls": 1, "total_cost": 30, "total_tokens": 0},
            {"service": "openai", "total_calls": 2, "total_cost": 5, "total_tokens": 150},
        ]

    async def test_cost_breakdown_date_range(self, repository):
        await repository.append(make_call(cost=2, created_at=BASE - timedelta(days=3)))
        await repository.append(make_call(cost=5))

        rows = await repository.cost_breakdown("user-1", start=BASE - timedelta(days=1))

        assert [row["total_cost"] for row in rows] == [5]

    async def test_recent_is_newest_first_and_limited(self, repository):
        for minutes in range(5):
            await repository.append(make_call(endpoint=f"/call/{minutes}", created_at=BASE + timedelta(minutes=minutes)))
        await repository.append(make_call(service="meshy", created_at=BASE + timedelta(hours=1)))

        calls = await repository.recent("user-1", limit=3, service="openai")

        assert [call.endpoint for call in calls] == ["/call/4", "/call/3", "/call/2"]
