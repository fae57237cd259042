"""
AI service call ledger repository.

This module provides data access operations for the ``ai_service_calls``
ledger: appends and lookups, windowed counters used by the rate limiter and the
aggregates behind the usage endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..entities.ai_service_calls import AIServiceCall
from .base import AsyncLedgerRepository, AsyncQueryBuilder


class AIServiceCallRepository(AsyncLedgerRepository[AIServiceCall]):
    """Async repository for the AI service call ledger."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, AIServiceCall)

    async def get_by_id(self, call_id: str) -> Optional[AIServiceCall]:
        stmt = select(AIServiceCall).where(AIServiceCall.id == call_id)
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def list(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[AIServiceCall]:
        stmt = select(AIServiceCall).order_by(AIServiceCall.created_at.desc())

        if filters:
            stmt = AsyncQueryBuilder.apply_filters(stmt, AIServiceCall, filters)

        stmt = AsyncQueryBuilder.apply_pagination(stmt, limit, offset)

        result = await self.session.exec(stmt)
        return list(result)

    # Windowed counters

    @staticmethod
    def _window(user_id: str, service: str, since: datetime, until: Optional[datetime]) -> List[Any]:
        return [
            AIServiceCall.user_id == user_id,
            AIServiceCall.service == service,
            *AsyncQueryBuilder.window(AIServiceCall.created_at, since, until),
        ]

    async def count_since(
        self, user_id: str, service: str, since: datetime, until: Optional[datetime] = None
    ) -> int:
        """Number of calls by a user to a service in ``[since, until]``."""
        stmt = select(func.count()).select_from(AIServiceCall).where(*self._window(user_id, service, since, until))
        result = await self.session.exec(stmt)
        return int(result.one() or 0)

    async def sum_tokens_since(
        self, user_id: str, service: str, since: datetime, until: Optional[datetime] = None
    ) -> int:
        """Tokens used by a user on a service in ``[since, until]``."""
        stmt = select(func.coalesce(func.sum(AIServiceCall.tokens_used), 0)).where(
            *self._window(user_id, service, since, until)
        )
        result = await self.session.exec(stmt)
        return int(result.one() or 0)

    async def sum_cost_since(
        self, user_id: str, service: str, since: datetime, until: Optional[datetime] = None
    ) -> int:
        """Cost in cents charged to a user on a service in ``[since, until]``."""
        stmt = select(func.coalesce(func.sum(AIServiceCall.cost), 0)).where(
            *self._window(user_id, service, since, until)
        )
        result = await self.session.exec(stmt)
        return int(result.one() or 0)

    async def usage_stats(
        self,
        user_id: str,
        service: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, int]:
        """Aggregate calls, outcomes, tokens, cost and mean duration.

        Args:
            user_id: Caller whose calls are aggregated
            service: Restrict to one service (optional)
            start: Inclusive lower bound on ``created_at`` (optional)
            end: Inclusive upper bound on ``created_at`` (optional)

        Returns:
            Dictionary with total_calls, successful_calls, failed_calls,
            total_tokens, total_cost and average_duration (rounded ms)
        """
        stmt = select(
            func.count(),
            func.coalesce(func.sum(case((AIServiceCall.status == "success", 1), else_=0)), 0),
            func.coalesce(func.sum(case((AIServiceCall.status == "error", 1), else_=0)), 0),
            func.coalesce(func.sum(AIServiceCall.tokens_used), 0),
            func.coalesce(func.sum(AIServiceCall.cost), 0),
            func.coalesce(func.avg(AIServiceCall.duration_ms), 0),
        ).where(*self._conditions(user_id, service, start, end))

        result = await self.session.exec(stmt)
        row = result.one()
        return {
            "total_calls": int(row[0] or 0),
            "successful_calls": int(row[1] or 0),
            "failed_calls": int(row[2] or 0),
            "total_tokens": int(row[3] or 0),
            "total_cost": int(row[4] or 0),
            "average_duration": round(float(row[5] or 0)),
        }

    async def cost_breakdown(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Per-service call count, cost and tokens, ordered by service name."""
        stmt = (
            select(
                AIServiceCall.service,
                func.count(),
                func.coalesce(func.sum(AIServiceCall.cost), 0),
                func.coalesce(func.sum(AIServiceCall.tokens_used), 0),
            )
            .where(*self._conditions(user_id, None, start, end))
            .group_by(AIServiceCall.service)
            .order_by(AIServiceCall.service)
        )
        result = await self.session.exec(stmt)
        return [
            {
                "service": service,
                "total_calls": int(calls or 0),
                "total_cost": int(cost or 0),
                "total_tokens": int(tokens or 0),
            }
            for service, calls, cost, tokens in result.all()
        ]

    async def recent(self, user_id: str, limit: int = 20, service: Optional[str] = None) -> List[AIServiceCall]:
        """Most recent calls for a user, newest first."""
        return await self.list(limit=limit, filters={"user_id": user_id, "service": service})

    @staticmethod
    def _conditions(
        user_id: str,
        service: Optional[str],
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> list:
        conditions = [AIServiceCall.user_id == user_id]
        if service:
            conditions.append(AIServiceCall.service == service)
        return conditions + AsyncQueryBuilder.window(AIServiceCall.created_at, start, end)
