"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "user_role": ("admin", "manager", "team_member", "finance", "client_viewer"),
    "campaign_status": ("planning", "active", "paused", "completed", "cancelled"),
    "task_status": ("not_started", "in_progress", "under_review", "completed", "blocked", "cancelled"),
    "task_priority": ("low", "medium", "high", "urgent"),
    "dependency_type": ("finish_to_start", "start_to_start", "finish_to_finish", "start_to_finish"),
    "invoice_status": ("draft", "sent", "paid", "overdue", "cancelled"),
    "activity_type": (
        "client_created",
        "client_updated",
        "campaign_created",
        "campaign_updated",
        "task_created",
        "task_updated",
        "task_completed",
        "invoice_created",
        "invoice_updated",
    ),
}

def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)

def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)

def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)

def upgrade() -> None:
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("role", _enum("user_role"), nullable=False, server_default="team_member"),
        _created_at(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "auth_magic_links",
        sa.Column("token_hash", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_auth_magic_links_user_id", "auth_magic_links", ["user_id"])

    op.create_table(
        "clients",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("company", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("owner_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        _created_at(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_clients_owner_id", "clients", ["owner_id"])

    op.create_table(
        "campaigns",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("client_id", _uuid(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", _enum("campaign_status"), nullable=False, server_default="planning"),
        sa.Column("budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_to_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_campaigns_client_id", "campaigns", ["client_id"])
    op.create_index("ix_campaigns_assigned_to_id", "campaigns", ["assigned_to_id"])

    op.create_table(
        "tasks",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("campaign_id", _uuid(), sa.ForeignKey("campaigns.id"), nullable=True),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", _enum("task_status"), nullable=False, server_default="not_started"),
        sa.Column("priority", _enum("task_priority"), nullable=False, server_default="medium"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_hours", sa.Numeric(8, 2), nullable=True),
        sa.Column("actual_hours", sa.Numeric(8, 2), nullable=True),
        sa.Column("created_by_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_to_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_tasks_campaign_id", "tasks", ["campaign_id"])
    op.create_index("ix_tasks_assigned_to_id", "tasks", ["assigned_to_id"])

    op.create_table(
        "task_dependencies",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("task_id", _uuid(), sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column("depends_on_id", _uuid(), sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column("type", _enum("dependency_type"), nullable=False, server_default="finish_to_start"),
        _created_at(),
        sa.UniqueConstraint("task_id", "depends_on_id", name="uq_task_dependency_pair"),
        sa.CheckConstraint("task_id <> depends_on_id", name="ck_task_dependency_no_self"),
    )
    op.create_index("ix_task_dependencies_task_id", "task_dependencies", ["task_id"])
    op.create_index("ix_task_dependencies_depends_on_id", "task_dependencies", ["depends_on_id"])

    op.create_table(
        "invoices",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("client_id", _uuid(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("campaign_id", _uuid(), sa.ForeignKey("campaigns.id"), nullable=True),
        sa.Column("invoice_number", sa.String(length=32), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", _enum("invoice_status"), nullable=False, server_default="draft"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        _created_at(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
    )
    op.create_index("ix_invoices_client_id", "invoices", ["client_id"])
    op.create_index("ix_invoices_created_by_id", "invoices", ["created_by_id"])

    op.create_table(
        "activities",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("type", _enum("activity_type"), nullable=False),
        sa.Column("title", sa.String(length=400), nullable=False),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("task_id", _uuid(), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("campaign_id", _uuid(), sa.ForeignKey("campaigns.id"), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_activities_user_id", "activities", ["user_id"])

def downgrade() -> None:
    op.drop_index("ix_activities_user_id", table_name="activities")
    op.drop_table("activities")

    op.drop_index("ix_invoices_created_by_id", table_name="invoices")
    op.drop_index("ix_invoices_client_id", table_name="invoices")
    op.drop_table("invoices")

    op.drop_index("ix_task_dependencies_depends_on_id", table_name="task_dependencies")
    op.drop_index("ix_task_dependencies_task_id", table_name="task_dependencies")
    op.drop_table("task_dependencies")

    op.drop_index("ix_tasks_assigned_to_id", table_name="tasks")
    op.drop_index("ix_tasks_campaign_id", table_name="tasks")
    op.drop_table("tasks")

    op.drop_index("ix_campaigns_assigned_to_id", table_name="campaigns")
    op.drop_index("ix_campaigns_client_id", table_name="campaigns")
    op.drop_table("campaigns")

    op.drop_index("ix_clients_owner_id", table_name="clients")
    op.drop_table("clients")

    op.drop_index("ix_auth_magic_links_user_id", table_name="auth_magic_links")
    op.drop_table("auth_magic_links")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
