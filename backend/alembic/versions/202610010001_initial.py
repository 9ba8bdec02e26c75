"""initial schema

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 00:00:01
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="admin"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.CheckConstraint("role IN ('super_admin', 'admin', 'moderator')", name="chk_admin_role"),
    )
    op.create_index("idx_admin_users_username", "admin_users", ["username"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_name", sa.String(length=100), nullable=False),
        sa.Column("team_code", sa.String(length=32), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("leader_name", sa.String(length=100), nullable=False),
        sa.Column("leader_email", sa.String(length=255), nullable=False),
        sa.Column("members", sa.JSON(), nullable=False),
        sa.Column("current_round", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("team_name"),
        sa.UniqueConstraint("team_code"),
        sa.CheckConstraint("current_round >= 1", name="chk_team_round"),
    )
    op.create_index("idx_teams_team_name", "teams", ["team_name"])

    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("token_ref", sa.String(length=64), nullable=False),
        sa.Column("session_type", sa.String(length=10), nullable=False),
        sa.Column("admin_user_id", sa.Integer(), nullable=True),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("last_activity", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["admin_user_id"], ["admin_users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_ref"),
        sa.CheckConstraint(
            "(session_type = 'admin' AND admin_user_id IS NOT NULL AND team_id IS NULL) OR "
            "(session_type = 'team' AND team_id IS NOT NULL AND admin_user_id IS NULL)",
            name="chk_session_owner",
        ),
    )
    op.create_index("idx_auth_sessions_token_ref", "auth_sessions", ["token_ref"])
    op.create_index("idx_auth_sessions_admin_user", "auth_sessions", ["admin_user_id"])
    op.create_index("idx_auth_sessions_team", "auth_sessions", ["team_id"])

    op.create_table(
        "rate_limits",
        sa.Column("identifier_hash", sa.String(length=64), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reset_at", sa.DateTime(), nullable=False),
        sa.Column("locked_until", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("identifier_hash"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("actor_type", sa.String(length=16), nullable=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("target_type", sa.String(length=64), nullable=True),
        sa.Column("target_id", sa.String(length=128), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("severity", sa.String(length=10), nullable=False, server_default="INFO"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_target_type", "audit_events", ["target_type"])
    op.create_index("ix_audit_events_target_id", "audit_events", ["target_id"])
    op.create_index("idx_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("idx_audit_events_actor", "audit_events", ["actor_type", "actor_id"])

    op.create_table(
        "scheduled_tasks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("task_type", sa.String(length=64), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("due_at", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed', 'cancelled')",
            name="chk_task_status",
        ),
        sa.CheckConstraint("attempts >= 0", name="chk_task_attempts"),
    )
    op.create_index("idx_scheduled_tasks_status_due", "scheduled_tasks", ["status", "due_at"])
    op.create_index("idx_scheduled_tasks_type", "scheduled_tasks", ["task_type"])

    op.create_table(
        "contest_config",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("quiz_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("voting_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("results_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("quiz_time_limit_minutes", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("current_round", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("quiz_started_at", sa.DateTime(), nullable=True),
        sa.Column("auto_submit_task_id", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["auto_submit_task_id"], ["scheduled_tasks.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "quiz_time_limit_minutes >= 5 AND quiz_time_limit_minutes <= 180",
            name="chk_quiz_time_limit",
        ),
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="in_progress"),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("team_id"),
        sa.CheckConstraint(
            "status IN ('in_progress', 'submitted', 'auto_submitted')",
            name="chk_quiz_attempt_status",
        ),
    )


def downgrade() -> None:
    op.drop_table("quiz_attempts")
    op.drop_table("contest_config")
    op.drop_index("idx_scheduled_tasks_type", table_name="scheduled_tasks")
    op.drop_index("idx_scheduled_tasks_status_due", table_name="scheduled_tasks")
    op.drop_table("scheduled_tasks")
    op.drop_index("idx_audit_events_actor", table_name="audit_events")
    op.drop_index("idx_audit_events_created_at", table_name="audit_events")
    op.drop_index("ix_audit_events_target_id", table_name="audit_events")
    op.drop_index("ix_audit_events_target_type", table_name="audit_events")
    op.drop_index("ix_audit_events_action", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("rate_limits")
    op.drop_index("idx_auth_sessions_team", table_name="auth_sessions")
    op.drop_index("idx_auth_sessions_admin_user", table_name="auth_sessions")
    op.drop_index("idx_auth_sessions_token_ref", table_name="auth_sessions")
    op.drop_table("auth_sessions")
    op.drop_index("idx_teams_team_name", table_name="teams")
    op.drop_table("teams")
    op.drop_index("idx_admin_users_username", table_name="admin_users")
    op.drop_table("admin_users")
