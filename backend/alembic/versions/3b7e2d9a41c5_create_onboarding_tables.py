"""create onboarding_sessions and onboarding_progress with row level security

Revision ID: 3b7e2d9a41c5
Revises:
Create Date: 2026-09-28 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e2d9a41c5"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_CURRENT_USER = "current_setting('app.current_user_id', true)"


def upgrade() -> None:
    """Create both onboarding tables and owner-only RLS policies."""
    op.create_table(
        "onboarding_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="in_progress"),
        sa.Column("current_step", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_steps", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("completion_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("form_data", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("ai_analysis", sa.JSON(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('in_progress', 'completed', 'abandoned')", name="ck_onboarding_sessions_status"
        ),
        sa.CheckConstraint(
            "completion_percentage BETWEEN 0 AND 100", name="ck_onboarding_sessions_completion_percentage"
        ),
        sa.CheckConstraint("current_step >= 1", name="ck_onboarding_sessions_current_step"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_onboarding_sessions_user_id"), "onboarding_sessions", ["user_id"], unique=False)
    op.create_index(op.f("ix_onboarding_sessions_expires_at"), "onboarding_sessions", ["expires_at"], unique=False)

    op.create_table(
        "onboarding_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("step_number", sa.Integer(), nullable=False),
        sa.Column("step_name", sa.String(length=50), nullable=False),
        sa.Column("step_data", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("ai_validation", sa.JSON(), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("skipped", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("completion_time", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["onboarding_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "step_number", name="uq_onboarding_progress_session_step"),
    )
    op.create_index(op.f("ix_onboarding_progress_session_id"), "onboarding_progress", ["session_id"], unique=False)

    # FORCE applies the policies to the table owner too
    for table in ("onboarding_sessions", "onboarding_progress"):
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY")

    op.execute(
        "CREATE POLICY onboarding_sessions_owner ON onboarding_sessions "
        f"USING (user_id = {_CURRENT_USER}) "
        f"WITH CHECK (user_id = {_CURRENT_USER})"
    )
    op.execute(
        "CREATE POLICY onboarding_progress_owner ON onboarding_progress "
        "USING (EXISTS (SELECT 1 FROM onboarding_sessions s "
        f"WHERE s.id = onboarding_progress.session_id AND s.user_id = {_CURRENT_USER})) "
        "WITH CHECK (EXISTS (SELECT 1 FROM onboarding_sessions s "
        f"WHERE s.id = onboarding_progress.session_id AND s.user_id = {_CURRENT_USER}))"
    )


def downgrade() -> None:
    """Drop policies, indexes and both tables."""
    op.execute("DROP POLICY IF EXISTS onboarding_progress_owner ON onboarding_progress")
    op.execute("DROP POLICY IF EXISTS onboarding_sessions_owner ON onboarding_sessions")
    op.drop_index(op.f("ix_onboarding_progress_session_id"), table_name="onboarding_progress")
    op.drop_table("onboarding_progress")
    op.drop_index(op.f("ix_onboarding_sessions_expires_at"), table_name="onboarding_sessions")
    op.drop_index(op.f("ix_onboarding_sessions_user_id"), table_name="onboarding_sessions")
    op.drop_table("onboarding_sessions")
