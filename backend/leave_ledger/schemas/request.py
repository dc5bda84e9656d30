# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_ledger.models.enums import RequestStatus, ReviewStage

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitLeavePayload(BaseModel):
    """Request body for submitting a leave request for the calling user."""

    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    half_day_start: bool = False
    half_day_end: bool = False
    reason: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        if self.start_date.year != self.end_date.year:
            msg = "A leave request cannot span two calendar years"
            raise ValueError(msg)
        return self


class ReviewPayload(BaseModel):
    """Request body for a review decision at the request's current stage."""

    approved: bool
    notes: str | None = Field(default=None, max_length=1000)
    expected_stage: ReviewStage | None = Field(
        default=None,
        description="Stage the reviewer saw; the review fails if the request has moved on",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class StageReview(BaseModel):
    reviewer_id: uuid.UUID
    reviewed_at: datetime | None
    notes: str | None


class LeaveRequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    company_id: uuid.UUID
    employee_id: uuid.UUID
    department_id: uuid.UUID | None
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    half_day_start: bool
    half_day_end: bool
    days_requested: Decimal
    reason: str | None
    status: RequestStatus
    current_stage: ReviewStage
    approval_chain: list[ReviewStage]
    manager_review: StageReview | None
    admin_review: StageReview | None
    owner_review: StageReview | None
    created_at: datetime


class LeaveRequestListResponse(BaseModel):
    """Paginated list of leave requests."""

    items: list[LeaveRequestResponse]
    total: int
