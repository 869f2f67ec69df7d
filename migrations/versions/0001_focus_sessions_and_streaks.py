"""focus sessions and user streaks

Revision ID: 0001
Revises:
Create Date: 2025-01-20 00:00:00.000000

focus_sessions holds one row per civil-day segment (append-only).
user_streaks holds the per-user projection; `version` backs optimistic
concurrency control.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- focus_sessions ---
    op.create_table(
        "focus_sessions",
        sa.Column("session_id", sa.String(160), nullable=False),
        sa.Column("source_session_id", sa.String(128), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False),
        sa.Column("civil_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("session_id"),
        sa.CheckConstraint("end_time > start_time", name="ck_focus_sessions_interval"),
        sa.CheckConstraint("duration_minutes >= 0", name="ck_focus_sessions_duration"),
    )
    op.create_index("ix_focus_sessions_source_session_id", "focus_sessions", ["source_session_id"])
    op.create_index("ix_focus_sessions_user_id", "focus_sessions", ["user_id"])
    op.create_index("ix_focus_sessions_user_civil_date", "focus_sessions", ["user_id", "civil_date"])

    # --- user_streaks ---
    op.create_table(
        "user_streaks",
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_qualified_date", sa.Date(), nullable=True),
        sa.Column("qualified_days_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_reset", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
        sa.CheckConstraint("current_streak >= 0", name="ck_user_streaks_current"),
        sa.CheckConstraint("longest_streak >= 0", name="ck_user_streaks_longest"),
        sa.CheckConstraint("qualified_days_count >= 0", name="ck_user_streaks_count"),
    )
    op.create_index("ix_user_streaks_qualified_days_count", "user_streaks", ["qualified_days_count"])


def downgrade() -> None:
    op.drop_index("ix_user_streaks_qualified_days_count", table_name="user_streaks")
    op.drop_table("user_streaks")
    op.drop_index("ix_focus_sessions_user_civil_date", table_name="focus_sessions")
    op.drop_index("ix_focus_sessions_user_id", table_name="focus_sessions")
    op.drop_index("ix_focus_sessions_source_session_id", table_name="focus_sessions")
    op.drop_table("focus_sessions")
