# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase
from leave_ledger.models.enums import RequestStatus, ReviewStage


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """An employee's leave request with its approval workflow state.

    The row is the unit of locking: every review takes ``FOR UPDATE`` on it
    before touching the referenced balance row.
    """

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_company_status", "company_id", "status"),
        sa.Index("ix_leave_request_employee_dates", "employee_id", "start_date", "end_date"),
    )

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    department_id: uuid.UUID | None = None
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    start_date: date
    end_date: date
    half_day_start: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    half_day_end: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    days_requested: Decimal = Field(sa_type=sa.Numeric(10, 2))
    year: int
    reason: str | None = None
    status: str = Field(
        default=RequestStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    current_stage: str = Field(default=ReviewStage.NONE, max_length=20)
    approval_chain: list[str] = Field(default_factory=list, sa_type=sa.JSON)

    manager_reviewer_id: uuid.UUID | None = None
    manager_reviewed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    manager_notes: str | None = None
    admin_reviewer_id: uuid.UUID | None = None
    admin_reviewed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    admin_notes: str | None = None
    owner_reviewer_id: uuid.UUID | None = None
    owner_reviewed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    owner_notes: str | None = None
