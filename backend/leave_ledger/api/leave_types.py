# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status

from leave_ledger.api.deps import AdminDep, AuthDep, validate_company_scope
from leave_ledger.db import SessionDep
from leave_ledger.schemas.leave_type import (
    CreateLeaveTypePayload,
    LeaveTypeListResponse,
    LeaveTypeResponse,
    UpdateLeaveTypePayload,
)
from leave_ledger.services import leave_type as leave_type_service

router = APIRouter(
    prefix="/companies/{company_id}/leave-types",
    tags=["leave-types"],
    dependencies=[Depends(validate_company_scope)],
)


@router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(
    session: SessionDep,
    auth: AuthDep,
) -> LeaveTypeListResponse:
    """List the company's active leave types, seeding the defaults on first use."""
    return await leave_type_service.list_leave_types(session, auth.company_id)


@router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    payload: CreateLeaveTypePayload,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    """Create a leave type (admin or owner)."""
    return await leave_type_service.create_leave_type(session, auth, payload)


@router.get("/{leave_type_id}", response_model=LeaveTypeResponse)
async def get_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveTypeResponse:
    return await leave_type_service.get_leave_type(session, auth.company_id, leave_type_id)


@router.patch("/{leave_type_id}", response_model=LeaveTypeResponse)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypePayload,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    """Partially update a leave type (admin or owner)."""
    return await leave_type_service.update_leave_type(session, auth, leave_type_id, payload)


@router.delete("/{leave_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> None:
    """Soft-delete a leave type with no open requests (admin or owner)."""
    await leave_type_service.delete_leave_type(session, auth, leave_type_id)
