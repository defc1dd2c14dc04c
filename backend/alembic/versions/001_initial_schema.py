"""Initial schema: users, projects, schedule, tasks, risks, messaging, calendar.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _uuid(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), nullable=nullable, **kwargs)


def upgrade() -> None:
    # Create users table
    op.create_table(
        "users",
        _uuid("id"),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    # Create projects table
    op.create_table(
        "projects",
        _uuid("id"),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="planning"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_activities", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_activities", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("schedule_updated_at", sa.DateTime(timezone=True), nullable=True),
        _uuid("client_id"),
        _uuid("created_by_id", nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("budget", sa.Numeric(14, 2), nullable=True),
        sa.Column("site_address", sa.String(500), nullable=True),
        sa.Column("scope_of_work", sa.Text(), nullable=True),
        sa.Column("design_style", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=False, server_default="[]"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["client_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint("progress BETWEEN 0 AND 100", name="ck_projects_progress_range"),
    )
    op.create_index("ix_projects_status", "projects", ["status"])
    op.create_index("ix_projects_client_id", "projects", ["client_id"])
    op.create_index("ix_projects_created_at", "projects", ["created_at"])

    # Create project_managers association table
    op.create_table(
        "project_managers",
        _uuid("project_id"),
        _uuid("user_id"),
        sa.Column(
            "assigned_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("project_id", "user_id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_project_managers_user_id", "project_managers", ["user_id"])

    # Create milestones table
    op.create_table(
        "milestones",
        _uuid("id"),
        _uuid("project_id"),
        sa.Column("phase", sa.String(32), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _uuid("completed_by_id", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["completed_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("project_id", "phase", name="uq_milestone_project_phase"),
    )
    op.create_index("ix_milestones_project_id", "milestones", ["project_id"])
    op.create_index("ix_milestones_created_at", "milestones", ["created_at"])

    # Create project_files table
    op.create_table(
        "project_files",
        _uuid("id"),
        _uuid("project_id"),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("url", sa.String(1000), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=True),
        sa.Column("size", sa.Integer(), nullable=True),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        _uuid("uploaded_by_id", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["uploaded_by_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_project_files_project_id", "project_files", ["project_id"])
    op.create_index("ix_project_files_created_at", "project_files", ["created_at"])

    # Create schedule_phases table
    op.create_table(
        "schedule_phases",
        _uuid("id"),
        _uuid("project_id"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_schedule_phases_project_id", "schedule_phases", ["project_id"])
    op.create_index("ix_schedule_phases_created_at", "schedule_phases", ["created_at"])

    # Create schedule_activities table
    op.create_table(
        "schedule_activities",
        _uuid("id"),
        _uuid("project_id"),
        _uuid("phase_id"),
        sa.Column("week_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("day_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("contractor", sa.String(200), nullable=True),
        sa.Column("supervisor", sa.String(200), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="to-do"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("category", sa.String(32), nullable=False, server_default="other"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("images", postgresql.JSONB(), nullable=False, server_default="[]"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["phase_id"], ["schedule_phases.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_schedule_activities_project_id", "schedule_activities", ["project_id"])
    op.create_index("ix_schedule_activities_phase_id", "schedule_activities", ["phase_id"])
    op.create_index("ix_schedule_activities_status", "schedule_activities", ["status"])
    op.create_index("ix_schedule_activities_created_at", "schedule_activities", ["created_at"])

    # Create activity_comments table
    op.create_table(
        "activity_comments",
        _uuid("id"),
        _uuid("activity_id"),
        _uuid("author_id", nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["activity_id"], ["schedule_activities.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_activity_comments_activity_id", "activity_comments", ["activity_id"])
    op.create_index("ix_activity_comments_created_at", "activity_comments", ["created_at"])

    # Create tasks table
    op.create_table(
        "tasks",
        _uuid("id"),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        _uuid("project_id"),
        _uuid("assignee_id", nullable=True),
        _uuid("created_by_id", nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_hours", sa.Numeric(8, 2), nullable=True),
        sa.Column("actual_hours", sa.Numeric(8, 2), nullable=True),
        sa.Column("attachments", postgresql.JSONB(), nullable=False, server_default="[]"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assignee_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint("progress BETWEEN 0 AND 100", name="ck_tasks_progress_range"),
    )
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])
    op.create_index("ix_tasks_deadline", "tasks", ["deadline"])
    op.create_index("ix_tasks_created_at", "tasks", ["created_at"])

    # Create task_dependencies table
    op.create_table(
        "task_dependencies",
        _uuid("task_id"),
        _uuid("depends_on_id"),
        sa.PrimaryKeyConstraint("task_id", "depends_on_id"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["depends_on_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.CheckConstraint("task_id <> depends_on_id", name="ck_task_dependencies_not_self"),
    )
    op.create_index(
        "ix_task_dependencies_depends_on_id", "task_dependencies", ["depends_on_id"]
    )

    # Create task_comments table
    op.create_table(
        "task_comments",
        _uuid("id"),
        _uuid("task_id"),
        _uuid("author_id", nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_task_comments_task_id", "task_comments", ["task_id"])
    op.create_index("ix_task_comments_created_at", "task_comments", ["created_at"])

    # Create risks table
    op.create_table(
        "risks",
        _uuid("id"),
        _uuid("project_id"),
        sa.Column("risk_code", sa.String(16), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(32), nullable=False, server_default="technical"),
        sa.Column("probability", sa.String(16), nullable=False),
        sa.Column("impact", sa.String(16), nullable=False),
        sa.Column("risk_score", sa.Integer(), nullable=False),
        sa.Column("triggers", sa.Text(), nullable=True),
        sa.Column("mitigation_strategy", sa.Text(), nullable=True),
        sa.Column("contingency_plan", sa.Text(), nullable=True),
        _uuid("owner_id", nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="identified"),
        sa.Column("review_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_review_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("residual_probability", sa.String(16), nullable=True),
        sa.Column("residual_impact", sa.String(16), nullable=True),
        sa.Column("residual_score", sa.Integer(), nullable=True),
        _uuid("created_by_id", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("project_id", "risk_code", name="uq_risk_project_code"),
    )
    op.create_index("ix_risks_project_id", "risks", ["project_id"])
    op.create_index("ix_risks_risk_score", "risks", ["risk_score"])
    op.create_index("ix_risks_created_at", "risks", ["created_at"])

    # Create messages table
    op.create_table(
        "messages",
        _uuid("id"),
        _uuid("project_id", nullable=True),
        _uuid("sender_id"),
        _uuid("recipient_id", nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(16), nullable=False, server_default="text"),
        sa.Column("attachments", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "recipient_id IS NOT NULL OR project_id IS NOT NULL",
            name="ck_messages_has_target",
        ),
    )
    op.create_index("ix_messages_project_id", "messages", ["project_id"])
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])
    op.create_index("ix_messages_recipient_id", "messages", ["recipient_id"])
    op.create_index("ix_messages_created_at", "messages", ["created_at"])

    # Create notifications table
    op.create_table(
        "notifications",
        _uuid("id"),
        _uuid("recipient_id"),
        _uuid("sender_id", nullable=True),
        _uuid("project_id", nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("data", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("category", sa.String(20), nullable=False, server_default="info"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_project_id", "notifications", ["project_id"])
    op.create_index("ix_notifications_type", "notifications", ["type"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

    # Create outbox_events table
    op.create_table(
        "outbox_events",
        _uuid("id"),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"])
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"])
    op.create_index("ix_outbox_events_created_at", "outbox_events", ["created_at"])

    # Create calendar_events table
    op.create_table(
        "calendar_events",
        _uuid("id"),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("all_day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("type", sa.String(16), nullable=False, server_default="event"),
        _uuid("project_id", nullable=True),
        _uuid("task_id", nullable=True),
        _uuid("created_by_id"),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurrence_rule", sa.String(255), nullable=True),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(16), nullable=False, server_default="scheduled"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("end_date >= start_date", name="ck_calendar_events_date_order"),
    )
    op.create_index("ix_calendar_events_start_date", "calendar_events", ["start_date"])
    op.create_index("ix_calendar_events_end_date", "calendar_events", ["end_date"])
    op.create_index("ix_calendar_events_project_id", "calendar_events", ["project_id"])
    op.create_index("ix_calendar_events_created_by_id", "calendar_events", ["created_by_id"])
    op.create_index("ix_calendar_events_created_at", "calendar_events", ["created_at"])

    # Create calendar_event_attendees association table
    op.create_table(
        "calendar_event_attendees",
        _uuid("event_id"),
        _uuid("user_id"),
        sa.PrimaryKeyConstraint("event_id", "user_id"),
        sa.ForeignKeyConstraint(["event_id"], ["calendar_events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_calendar_event_attendees_user_id", "calendar_event_attendees", ["user_id"]
    )


def downgrade() -> None:
    op.drop_table("calendar_event_attendees")
    op.drop_table("calendar_events")
    op.drop_table("outbox_events")
    op.drop_table("notifications")
    op.drop_table("messages")
    op.drop_table("risks")
    op.drop_table("task_comments")
    op.drop_table("task_dependencies")
    op.drop_table("tasks")
    op.drop_table("activity_comments")
    op.drop_table("schedule_activities")
    op.drop_table("schedule_phases")
    op.drop_table("project_files")
    op.drop_table("milestones")
    op.drop_table("project_managers")
    op.drop_table("projects")
    op.drop_table("users")
