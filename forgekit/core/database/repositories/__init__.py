"""
Database repository layer using SQLModel.

Modules:
- base: AsyncLedgerRepository interface and AsyncQueryBuilder utilities
- ai_service_calls: AI service call ledger operations and usage aggregates
"""

from .ai_service_calls import AIServiceCallRepository
from .base import AsyncLedgerRepository, AsyncQueryBuilder

__all__ = ["AIServiceCallRepository", "AsyncLedgerRepository", "AsyncQueryBuilder"]
