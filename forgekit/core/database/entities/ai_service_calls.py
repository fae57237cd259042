"""
AI service call ledger entity.

This module contains the database entity for usage and cost accounting of
outbound AI provider calls. Every metered call (successful or not) appends one
row; the rate limiter derives its hourly and daily counters from these rows.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime, Index
from sqlmodel import Field

from ..base import Base, utc_now

CALL_STATUSES = ("success", "error", "timeout")


class AIServiceCall(Base, table=True):
    """Entity for a single outbound AI provider call.

    Table: ai_service_calls
    """

    __tablename__ = "ai_service_calls"
    __table_args__ = (Index("idx_ai_calls_user_service", "user_id", "service"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, max_length=64)

    # User/Request
    user_id: str = Field(max_length=64, index=True)
    service: str = Field(max_length=100, index=True)
    endpoint: str = Field(max_length=255)
    model: Optional[str] = Field(default=None, max_length=100)

    # Request/Response
    request_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    response_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    tokens_used: Optional[int] = Field(default=None)
    # Cost in US cents
    cost: Optional[int] = Field(default=None)

    # Timing
    duration_ms: Optional[int] = Field(default=None)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )

    # Status
    status: str = Field(max_length=50)
    error: Optional[str] = Field(default=None)

    def __repr__(self) -> str:
        return f"AIServiceCall(id={self.id}, service={self.service}, status={self.status}, cost={self.cost})"
