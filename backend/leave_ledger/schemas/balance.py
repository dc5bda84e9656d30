# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from leave_ledger.models.enums import BulkAllocationAction

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """Ledger state for one leave type and year."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_name: str
    year: int
    allocated: Decimal
    used: Decimal
    pending: Decimal
    carried_forward: Decimal
    available: Decimal | None  # None for unpaid or unlimited types
    is_capped: bool
    updated_at: datetime | None


class BalanceListResponse(BaseModel):
    """All leave-type balances of an employee for a year."""

    items: list[BalanceResponse]
    total: int


# ---------------------------------------------------------------------------
# Allocation adjustment
# ---------------------------------------------------------------------------


class AllocationAdjustmentPayload(BaseModel):
    """Request body for an admin change to an employee's allocated days."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int = Field(ge=2000, le=2100)
    delta_days: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="Signed number of days: positive to grant, negative to revoke",
    )
    reason: str = Field(min_length=1, max_length=1000)


class BulkAllocationPayload(BaseModel):
    """Request body for a company-wide change to one leave type's allocations.

    Applies to every existing balance of ``leave_type_id`` for ``year``.
    """

    leave_type_id: uuid.UUID
    year: int = Field(ge=2000, le=2100)
    action: BulkAllocationAction
    value: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="New allocation for reset_allocated, signed delta for add_allocated",
    )
    reason: str = Field(min_length=1, max_length=1000)
