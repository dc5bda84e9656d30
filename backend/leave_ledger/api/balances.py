# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status

from leave_ledger.api.deps import AdminDep, AuthDep, validate_company_scope
from leave_ledger.db import SessionDep
from leave_ledger.exceptions import AppError
from leave_ledger.schemas.balance import (
    AllocationAdjustmentPayload,
    BalanceListResponse,
    BalanceResponse,
    BulkAllocationPayload,
)
from leave_ledger.services import balance as balance_service

employee_balance_router = APIRouter(
    prefix="/companies/{company_id}/employees/{employee_id}/balances",
    tags=["balances"],
    dependencies=[Depends(validate_company_scope)],
)

company_balance_router = APIRouter(
    prefix="/companies/{company_id}/balances",
    tags=["balances"],
    dependencies=[Depends(validate_company_scope)],
)

allocation_router = APIRouter(
    prefix="/companies/{company_id}/allocations",
    tags=["balances"],
    dependencies=[Depends(validate_company_scope)],
)


@employee_balance_router.get("", response_model=BalanceListResponse)
async def get_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> BalanceListResponse:
    """Get every leave-type balance of an employee for a year (default: current year).

    Employees see their own balances; admins and owners see anyone's.
    """
    if employee_id != auth.user_id and not auth.role.is_administrative:
        raise AppError("Cannot view another employee's balances", status_code=status.HTTP_403_FORBIDDEN)
    return await balance_service.get_employee_balances(
        session, auth.company_id, employee_id, year or date.today().year
    )


@company_balance_router.get("", response_model=BalanceListResponse)
async def list_company_balances(
    session: SessionDep,
    auth: AdminDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
    employee_id: uuid.UUID | None = Query(default=None),
    leave_type_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
) -> BalanceListResponse:
    """List existing balances across the company (admin or owner)."""
    return await balance_service.list_company_balances(
        session,
        auth.company_id,
        year or date.today().year,
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        offset=offset,
        limit=limit,
    )


@allocation_router.post("", response_model=BalanceResponse)
async def adjust_allocation(
    payload: AllocationAdjustmentPayload,
    session: SessionDep,
    auth: AdminDep,
) -> BalanceResponse:
    """Grant or revoke allocated days (admin or owner)."""
    return await balance_service.adjust_allocation(session, auth, payload)


@allocation_router.post("/bulk", response_model=BalanceListResponse)
async def bulk_adjust_allocations(
    payload: BulkAllocationPayload,
    session: SessionDep,
    auth: AdminDep,
) -> BalanceListResponse:
    """Reset or shift allocations for one leave type and year across the company."""
    return await balance_service.bulk_adjust_allocations(session, auth, payload)
