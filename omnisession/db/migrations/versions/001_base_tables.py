"""Create assistants, users and sessions tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18

The sessions unique index is created by ensure_session_index at startup.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the base tables."""
    op.create_table(
        "assistants",
        sa.Column("assistant_id", UUID, primary_key=True),
        sa.Column("company_id", UUID, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("language", sa.String(16), nullable=False, server_default="en"),
        sa.Column("session_ttl_hours", sa.Float),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.CheckConstraint(
            "session_ttl_hours IS NULL OR session_ttl_hours >= 0",
            name="chk_assistant_ttl",
        ),
    )
    op.create_index("idx_assistants_company", "assistants", ["company_id", "created_at"])

    op.create_table(
        "users",
        sa.Column("user_id", sa.String(255), primary_key=True),
        sa.Column("company_id", UUID, nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("phone", sa.String(64), nullable=False, server_default=""),
    )

    # channel / channel_user_id are nullable so rows written before channels
    # existed survive; ensure_session_index backfills them.
    op.create_table(
        "sessions",
        sa.Column("session_id", UUID, primary_key=True),
        sa.Column("company_id", UUID, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("assistant_id", UUID, nullable=False),
        sa.Column("channel", sa.String(50)),
        sa.Column("channel_user_id", sa.String(255)),
        sa.Column("channel_metadata", JSONB, nullable=False, server_default="{}"),
        sa.Column("thread_id", sa.String(64), nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("last_activity_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_sessions_company_created", "sessions", ["company_id", "created_at"])
    op.create_index("idx_sessions_assistant", "sessions", ["assistant_id"])


def downgrade() -> None:
    """Drop the base tables."""
    op.drop_table("sessions")
    op.drop_table("users")
    op.drop_table("assistants")
