# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from leave_ledger.api.deps import AuthDep, ReviewerDep, validate_company_scope
from leave_ledger.db import SessionDep
from leave_ledger.models.enums import RequestStatus, ReviewStage
from leave_ledger.schemas.request import (
    LeaveRequestListResponse,
    LeaveRequestResponse,
    ReviewPayload,
    SubmitLeavePayload,
)
from leave_ledger.services import request as request_service

requests_router = APIRouter(
    prefix="/companies/{company_id}/leave-requests",
    tags=["leave-requests"],
    dependencies=[Depends(validate_company_scope)],
)


@requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: SubmitLeavePayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Submit a leave request for the calling user."""
    return await request_service.submit_request(session, auth, payload)


@requests_router.get("", response_model=LeaveRequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
    leave_type_id: uuid.UUID | None = Query(default=None),
    stage: ReviewStage | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List leave requests with optional filters."""
    return await request_service.list_requests(
        session, auth.company_id, status_filter, employee_id, leave_type_id, stage, offset, limit
    )


@requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Get a single leave request."""
    return await request_service.get_request(session, auth.company_id, request_id)


@requests_router.post("/{request_id}/review", response_model=LeaveRequestResponse)
async def review_request(
    request_id: uuid.UUID,
    payload: ReviewPayload,
    session: SessionDep,
    auth: ReviewerDep,
) -> LeaveRequestResponse:
    """Approve or reject a request at its current approval stage."""
    return await request_service.review_request(session, auth, request_id, payload)
