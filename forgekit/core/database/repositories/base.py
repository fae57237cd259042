"""
Async ledger repository interface and query helpers.

Ledger tables only grow: rows are appended once and never updated or deleted,
so the interface has no update/delete operations. Reads are either by id,
paginated listings or aggregates over a time window.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

EntityType = TypeVar("EntityType", bound=SQLModel)


class AsyncLedgerRepository(ABC, Generic[EntityType]):
    """Append-only async repository over one SQLModel ledger table."""

    def __init__(self, session: AsyncSession, model: Type[EntityType]) -> None:
        self.session = session
        self.model = model

    async def append(self, entry: EntityType) -> EntityType:
        """Persist a new ledger row and return it with generated fields populated."""
        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)
        return entry

    @abstractmethod
    async def get_by_id(self, entry_id: str) -> Optional[EntityType]:
        """Ledger row by primary key, ``None`` if absent."""

    @abstractmethod
    async def list(
        self, limit: Optional[int] = None, offset: Optional[int] = None, filters: Optional[Dict[str, Any]] = None
    ) -> List[EntityType]:
        """Rows newest first.

        Args:
            limit: Maximum number of rows to return
            offset: Number of rows to skip
            filters: Equality filters by column name; ``None`` values are ignored
        """


class AsyncQueryBuilder:
    """Helpers for composing SQLModel select statements over ledger tables."""

    @staticmethod
    def apply_filters(stmt, model: Type[EntityType], filters: Dict[str, Any]):
        for key, value in filters.items():
            if value is not None and hasattr(model, key):
                stmt = stmt.where(getattr(model, key) == value)
        return stmt

    @staticmethod
    def apply_pagination(stmt, limit: Optional[int], offset: Optional[int]):
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset is not None:
            stmt = stmt.offset(offset)
        return stmt

    @staticmethod
    def window(column, start: Optional[datetime] = None, end: Optional[datetime] = None) -> list:
        """Inclusive ``[start, end]`` bounds on a timestamp column; open ends are skipped."""
        conditions = []
        if start is not None:
            conditions.append(column >= start)
        if end is not None:
            conditions.append(column <= end)
        return conditions
