"""Leave ledger tables: leave_type, leave_balance, leave_request

Revision ID: 0001
Revises:
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "leave_type",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("days_allowed", sa.Integer(), nullable=True),
        sa.Column("is_paid", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("carry_forward_allowed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("max_carry_forward_days", sa.Integer(), server_default="0", nullable=False),
        sa.Column("requires_approval", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_leave_type_company_id"), "leave_type", ["company_id"], unique=False)
    op.create_index(
        "uq_leave_type_company_slug",
        "leave_type",
        ["company_id", "slug"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "leave_balance",
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("allocated", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("used", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("pending", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("carried_forward", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["leave_type_id"], ["leave_type.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("company_id", "employee_id", "leave_type_id", "year"),
    )
    op.create_index(op.f("ix_leave_balance_employee_id"), "leave_balance", ["employee_id"], unique=False)

    op.create_table(
        "leave_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("department_id", sa.Uuid(), nullable=True),
        sa.Column("leave_type_id", sa.Uuid(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("half_day_start", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("half_day_end", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("days_requested", sa.Numeric(10, 2), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("current_stage", sa.String(length=20), nullable=False),
        sa.Column("approval_chain", sa.JSON(), nullable=False),
        sa.Column("manager_reviewer_id", sa.Uuid(), nullable=True),
        sa.Column("manager_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manager_notes", sa.String(), nullable=True),
        sa.Column("admin_reviewer_id", sa.Uuid(), nullable=True),
        sa.Column("admin_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.String(), nullable=True),
        sa.Column("owner_reviewer_id", sa.Uuid(), nullable=True),
        sa.Column("owner_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("owner_notes", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["leave_type_id"], ["leave_type.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("start_date <= end_date", name="ck_leave_request_date_order"),
    )
    op.create_index(op.f("ix_leave_request_company_id"), "leave_request", ["company_id"], unique=False)
    op.create_index(op.f("ix_leave_request_employee_id"), "leave_request", ["employee_id"], unique=False)
    op.create_index(op.f("ix_leave_request_leave_type_id"), "leave_request", ["leave_type_id"], unique=False)
    op.create_index(op.f("ix_leave_request_status"), "leave_request", ["status"], unique=False)
    op.create_index("ix_leave_request_company_status", "leave_request", ["company_id", "status"], unique=False)
    op.create_index(
        "ix_leave_request_employee_dates", "leave_request", ["employee_id", "start_date", "end_date"], unique=False
    )


def downgrade() -> None:
    op.drop_table("leave_request")
    op.drop_table("leave_balance")
    op.drop_index("uq_leave_type_company_slug", table_name="leave_type")
    op.drop_index(op.f("ix_leave_type_company_id"), table_name="leave_type")
    op.drop_table("leave_type")
