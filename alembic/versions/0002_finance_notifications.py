"""invoice breakdown, expenses, notifications, client contacts, campaign kpis

Revision ID: 0002_finance_notifications
Revises: 0001_init
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0002_finance_notifications"
down_revision = "0001_init"
branch_labels = None
depends_on = None

ENUMS = {
    "payment_status": ("pending", "partial", "paid", "overdue", "refunded"),
    "expense_status": ("pending", "approved", "rejected"),
    "notification_type": (
        "task_assigned",
        "task_updated",
        "campaign_update",
        "invoice_sent",
        "payment_received",
        "expense_reviewed",
    ),
}

NEW_ACTIVITY_TYPES = ("invoice_sent", "payment_received", "expense_created", "expense_updated")

NOTIFICATION_FLAGS = ("in_app",) + ENUMS["notification_type"]

def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)

def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)

def _ts(name: str, nullable: bool = True, now: bool = False) -> sa.Column:
    default = sa.text("now()") if now else None
    return sa.Column(name, sa.DateTime(timezone=True), server_default=default, nullable=nullable)

def upgrade() -> None:
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    # ALTER TYPE ... ADD VALUE cannot run inside a transaction block
    with op.get_context().autocommit_block():
        for value in NEW_ACTIVITY_TYPES:
            op.execute(f"ALTER TYPE activity_type ADD VALUE IF NOT EXISTS '{value}'")

    op.add_column("invoices", sa.Column("subtotal", sa.Numeric(12, 2), nullable=True))
    op.add_column("invoices", sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default="0"))
    op.add_column("invoices", sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"))
    op.add_column("invoices", sa.Column("total", sa.Numeric(12, 2), nullable=True))
    op.add_column(
        "invoices",
        sa.Column("payment_status", _enum("payment_status"), nullable=False, server_default="pending"),
    )
    op.add_column("invoices", _ts("issue_date"))
    op.add_column("invoices", _ts("paid_date"))
    op.add_column("invoices", sa.Column("notes", sa.Text(), nullable=True))
    op.execute("UPDATE invoices SET subtotal = amount, total = amount")
    op.execute("UPDATE invoices SET payment_status = 'paid' WHERE status = 'paid'")
    op.alter_column("invoices", "subtotal", nullable=False)
    op.alter_column("invoices", "total", nullable=False)
    op.drop_column("invoices", "amount")

    op.add_column("campaigns", sa.Column("actual_spend", sa.Numeric(12, 2), nullable=True))
    op.add_column("campaigns", sa.Column("kpi_target", sa.JSON(), nullable=True))
    op.add_column("campaigns", sa.Column("kpi_actual", sa.JSON(), nullable=True))

    op.create_table(
        "client_contacts",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("client_id", _uuid(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("title", sa.String(length=100), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        _ts("created_at", nullable=False, now=True),
        _ts("deleted_at"),
    )
    op.create_index("ix_client_contacts_client_id", "client_contacts", ["client_id"])

    op.create_table(
        "expenses",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("description", sa.String(length=400), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("receipt_url", sa.String(length=1000), nullable=True),
        _ts("expense_date", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", _enum("expense_status"), nullable=False, server_default="pending"),
        sa.Column("created_by_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("approved_by_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        _ts("approved_at"),
        _ts("created_at", nullable=False, now=True),
        _ts("updated_at", nullable=False, now=True),
        _ts("deleted_at"),
    )
    op.create_index("ix_expenses_created_by_id", "expenses", ["created_by_id"])

    op.create_table(
        "notifications",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", _enum("notification_type"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=500), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("read_at"),
        _ts("created_at", nullable=False, now=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "notification_preferences",
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), primary_key=True, nullable=False),
        *(sa.Column(flag, sa.Boolean(), nullable=False, server_default=sa.true()) for flag in NOTIFICATION_FLAGS),
        _ts("updated_at", nullable=False, now=True),
    )

def downgrade() -> None:
    op.drop_table("notification_preferences")

    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_expenses_created_by_id", table_name="expenses")
    op.drop_table("expenses")

    op.drop_index("ix_client_contacts_client_id", table_name="client_contacts")
    op.drop_table("client_contacts")

    op.drop_column("campaigns", "kpi_actual")
    op.drop_column("campaigns", "kpi_target")
    op.drop_column("campaigns", "actual_spend")

    op.add_column("invoices", sa.Column("amount", sa.Numeric(12, 2), nullable=True))
    op.execute("UPDATE invoices SET amount = total")
    op.alter_column("invoices", "amount", nullable=False)
    for name in ("notes", "paid_date", "issue_date", "payment_status", "total", "discount", "tax", "subtotal"):
        op.drop_column("invoices", name)

    # postgres cannot drop enum values; rows using the new activity types must go first
    op.execute(
        "DELETE FROM activities WHERE type::text IN ("
        + ", ".join(f"'{v}'" for v in NEW_ACTIVITY_TYPES)
        + ")"
    )

    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
