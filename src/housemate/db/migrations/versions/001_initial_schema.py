"""Initial schema — households, expenses, settlements and tasks.

Revision ID: 001
Revises: None
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _created_at_column() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def _fk(name: str, target: str, nullable: bool = False, ondelete: str | None = None) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    # ── profiles ──────────────────────────────────────────────────────
    op.create_table(
        "profiles",
        _id_column(),
        sa.Column("full_name", sa.Text, nullable=True),
        sa.Column("avatar_url", sa.Text, nullable=True),
        _created_at_column(),
    )

    # ── groups ────────────────────────────────────────────────────────
    op.create_table(
        "groups",
        _id_column(),
        sa.Column("name", sa.Text, nullable=False),
        _created_at_column(),
    )

    op.create_table(
        "group_members",
        _id_column(),
        _fk("group_id", "groups.id"),
        _fk("user_id", "profiles.id"),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_member"),
    )

    # ── expenses ──────────────────────────────────────────────────────
    op.create_table(
        "expenses",
        _id_column(),
        _fk("group_id", "groups.id"),
        _fk("created_by", "profiles.id"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.Text, nullable=False),
        sa.Column("kind", sa.Text, nullable=False, server_default="expense"),
        sa.Column("date", sa.Date, nullable=False, server_default=sa.func.current_date()),
        _created_at_column(),
        sa.CheckConstraint("amount >= 0", name="ck_expenses_amount"),
        sa.CheckConstraint("kind IN ('expense', 'credit')", name="ck_expenses_kind"),
    )
    op.create_index("ix_expenses_group_id", "expenses", ["group_id"])

    op.create_table(
        "expense_shares",
        _id_column(),
        _fk("expense_id", "expenses.id", ondelete="CASCADE"),
        _fk("user_id", "profiles.id"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", sa.Text, nullable=True),
        sa.Column("settlement_note", sa.Text, nullable=True),
        _created_at_column(),
        sa.CheckConstraint("amount >= 0", name="ck_expense_shares_amount"),
    )
    op.create_index("ix_expense_shares_user_id", "expense_shares", ["user_id"])

    op.create_table(
        "expense_settlements",
        _id_column(),
        _fk("group_id", "groups.id"),
        _fk("from_user_id", "profiles.id"),
        _fk("to_user_id", "profiles.id"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.Text, nullable=False),
        sa.Column("payment_method", sa.Text, nullable=False, server_default="cash"),
        sa.Column("note", sa.Text, nullable=False, server_default=""),
        sa.Column("status", sa.Text, nullable=False, server_default="completed"),
        _created_at_column(),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount >= 0.01", name="ck_expense_settlements_amount"),
        sa.CheckConstraint("from_user_id <> to_user_id", name="ck_expense_settlements_parties"),
    )

    # ── tasks ─────────────────────────────────────────────────────────
    op.create_table(
        "tasks",
        _id_column(),
        _fk("group_id", "groups.id"),
        sa.Column("title", sa.Text, nullable=False),
        _fk("assigned_to", "profiles.id", nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at_column(),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'missed')",
            name="ck_tasks_status",
        ),
    )
    op.create_index("ix_tasks_assigned_to", "tasks", ["assigned_to"])

    op.create_table(
        "task_swap_requests",
        _id_column(),
        _fk("task_id", "tasks.id", ondelete="CASCADE"),
        _fk("requester_id", "profiles.id"),
        _fk("requested_id", "profiles.id"),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("reason", sa.Text, nullable=True),
        _created_at_column(),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')",
            name="ck_task_swap_requests_status",
        ),
    )

    op.create_table(
        "task_issues",
        _id_column(),
        _fk("task_id", "tasks.id", ondelete="CASCADE"),
        _fk("assignee_id", "profiles.id"),
        _fk("reporter_id", "profiles.id"),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("description", sa.Text, nullable=True),
        _created_at_column(),
        sa.CheckConstraint(
            "status IN ('pending', 'verified', 'rejected')",
            name="ck_task_issues_status",
        ),
    )


def downgrade() -> None:
    op.drop_table("task_issues")
    op.drop_table("task_swap_requests")
    op.drop_index("ix_tasks_assigned_to", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("expense_settlements")
    op.drop_index("ix_expense_shares_user_id", table_name="expense_shares")
    op.drop_table("expense_shares")
    op.drop_index("ix_expenses_group_id", table_name="expenses")
    op.drop_table("expenses")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("profiles")
