# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateLeaveTypePayload(BaseModel):
    """Request body for creating a leave type."""

    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    days_allowed: int | None = Field(default=None, ge=0, description="Annual allotment in days; null for unlimited")
    is_paid: bool = True
    carry_forward_allowed: bool = False
    max_carry_forward_days: int = Field(default=0, ge=0)
    requires_approval: bool = True


class UpdateLeaveTypePayload(BaseModel):
    """Partial update of a leave type. Omitted fields are left untouched."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    days_allowed: int | None = Field(default=None, ge=0)
    is_paid: bool | None = None
    carry_forward_allowed: bool | None = None
    max_carry_forward_days: int | None = Field(default=None, ge=0)
    requires_approval: bool | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveTypeResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    slug: str
    description: str | None
    days_allowed: int | None
    is_paid: bool
    is_unlimited: bool
    carry_forward_allowed: bool
    max_carry_forward_days: int
    requires_approval: bool
    created_at: datetime


class LeaveTypeListResponse(BaseModel):
    items: list[LeaveTypeResponse]
    total: int
