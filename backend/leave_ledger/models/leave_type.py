# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import SoftDeleteMixin, TimestampMixin, UpdatedAtMixin, UUIDBase


class LeaveType(UUIDBase, TimestampMixin, UpdatedAtMixin, SoftDeleteMixin, table=True):
    """A per-company leave category (Annual, Sick, Unpaid, ...)."""

    __tablename__ = "leave_type"
    __table_args__ = (
        sa.Index(
            "uq_leave_type_company_slug",
            "company_id",
            "slug",
            unique=True,
            postgresql_where=sa.text("deleted_at IS NULL"),
        ),
    )

    company_id: uuid.UUID = Field(index=True)
    name: str = Field(max_length=100)
    slug: str = Field(max_length=120)
    description: str | None = None
    days_allowed: int | None = Field(default=None, ge=0)  # None means unlimited
    is_paid: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    carry_forward_allowed: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    max_carry_forward_days: int = Field(default=0, ge=0, sa_column_kwargs={"server_default": "0"})
    requires_approval: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})

    @property
    def is_capped(self) -> bool:
        """Whether reservations are checked against the allocated balance.

        Unpaid and unlimited types are always grantable.
        """
        return self.is_paid and self.days_allowed is not None
