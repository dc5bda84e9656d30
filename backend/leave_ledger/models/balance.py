# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import UpdatedAtMixin

_DAYS = sa.Numeric(10, 2)


class LeaveBalance(UpdatedAtMixin, table=True):
    """Per-year leave ledger row for one employee and leave type.

    ``used`` and ``pending`` are written only by the ledger operations in
    ``leave_ledger.services.balance`` while the row is locked.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (sa.PrimaryKeyConstraint("company_id", "employee_id", "leave_type_id", "year"),)

    company_id: uuid.UUID
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    year: int
    allocated: Decimal = Field(default=Decimal(0), sa_type=_DAYS, sa_column_kwargs={"server_default": "0"})
    used: Decimal = Field(default=Decimal(0), sa_type=_DAYS, sa_column_kwargs={"server_default": "0"})
    pending: Decimal = Field(default=Decimal(0), sa_type=_DAYS, sa_column_kwargs={"server_default": "0"})
    carried_forward: Decimal = Field(default=Decimal(0), sa_type=_DAYS, sa_column_kwargs={"server_default": "0"})

    @property
    def available(self) -> Decimal:
        return self.allocated - self.used - self.pending
