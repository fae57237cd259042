"""AI service call ledger for ForgeKit

Revision ID: 20261016_000000
Revises: None
Create Date: 2026-10-16 00:00:00.000000

Creates the ``ai_service_calls`` table, the usage ledger the rate limiter
and the usage endpoints read from.

Revision format: YYYYMMDD_HHMMSS_description

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261016_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the ai_service_calls table and its indexes."""
    op.create_table(
        "ai_service_calls",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("service", sa.String(100), nullable=False),
        sa.Column("endpoint", sa.String(255), nullable=False),
        sa.Column("model", sa.String(100), nullable=True),
        sa.Column("request_data", sa.JSON(), nullable=False),
        sa.Column("response_data", sa.JSON(), nullable=False),
        sa.Column("tokens_used", sa.Integer(), nullable=True),
        sa.Column("cost", sa.Integer(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("error", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ai_service_calls_user_id", "ai_service_calls", ["user_id"])
    op.create_index("ix_ai_service_calls_service", "ai_service_calls", ["service"])
    op.create_index("ix_ai_service_calls_created_at", "ai_service_calls", ["created_at"])
    op.create_index("idx_ai_calls_user_service", "ai_service_calls", ["user_id", "service"])


def downgrade() -> None:
    """Drop the ledger table."""
    op.drop_index("idx_ai_calls_user_service", table_name="ai_service_calls")
    op.drop_index("ix_ai_service_calls_created_at", table_name="ai_service_calls")
    op.drop_index("ix_ai_service_calls_service", table_name="ai_service_calls")
    op.drop_index("ix_ai_service_calls_user_id", table_name="ai_service_calls")
    op.drop_table("ai_service_calls")
