# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlmodel import col

from leave_ledger.exceptions import AppError, InsufficientBalanceError, LedgerInvariantViolationError
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.enums import AuditAction, AuditEntityType, BulkAllocationAction
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.schemas.balance import BalanceListResponse, BalanceResponse
from leave_ledger.services.audit import model_to_audit_dict, record_audit
from leave_ledger.services.leave_type import ensure_leave_types, get_leave_type_or_404

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.balance import AllocationAdjustmentPayload, BulkAllocationPayload

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_balance_response(balance: LeaveBalance, leave_type: LeaveType) -> BalanceResponse:
    return BalanceResponse(
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        leave_type_name=leave_type.name,
        year=balance.year,
        allocated=balance.allocated,
        used=balance.used,
        pending=balance.pending,
        carried_forward=balance.carried_forward,
        available=balance.available if leave_type.is_capped else None,
        is_capped=leave_type.is_capped,
        updated_at=balance.updated_at,
    )


async def _select_balance(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    *,
    for_update: bool = False,
) -> LeaveBalance | None:
    query = select(LeaveBalance).where(
        col(LeaveBalance.company_id) == company_id,
        col(LeaveBalance.employee_id) == employee_id,
        col(LeaveBalance.leave_type_id) == leave_type_id,
        col(LeaveBalance.year) == year,
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def _carry_forward_days(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    year: int,
) -> Decimal:
    """Unspent days from ``year - 1`` that roll into ``year``, capped by the type."""
    if not leave_type.carry_forward_allowed or leave_type.max_carry_forward_days <= 0:
        return _ZERO

    previous = await _select_balance(session, company_id, employee_id, leave_type.id, year - 1)
    if previous is None:
        return _ZERO

    remaining = max(previous.available, _ZERO)
    return min(remaining, Decimal(leave_type.max_carry_forward_days))


async def _lock_for_settlement(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    days: Decimal,
) -> LeaveBalance:
    """Lock the balance a reservation was taken from and check it still holds ``days``."""
    balance = await _select_balance(session, company_id, employee_id, leave_type_id, year, for_update=True)
    if balance is None:
        logger.critical(
            "No balance row to settle: company=%s employee=%s type=%s year=%s",
            company_id,
            employee_id,
            leave_type_id,
            year,
        )
        raise LedgerInvariantViolationError("Balance row missing for an outstanding reservation", days=days)

    if balance.pending - days < _ZERO:
        logger.critical(
            "Pending would go negative: company=%s employee=%s type=%s year=%s pending=%s days=%s",
            company_id,
            employee_id,
            leave_type_id,
            year,
            balance.pending,
            days,
        )
        raise LedgerInvariantViolationError(
            "Settlement exceeds the pending reservation", pending=balance.pending, days=days
        )
    return balance


# ---------------------------------------------------------------------------
# Ledger operations
# ---------------------------------------------------------------------------


async def get_or_init(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    year: int,
    *,
    lock: bool = False,
) -> LeaveBalance:
    """Return the balance row, inserting it seeded from the leave type if absent.

    Concurrent first access is resolved by ``ON CONFLICT DO NOTHING``: the
    loser's insert is a no-op and both read the winner's row.
    """
    balance = await _select_balance(session, company_id, employee_id, leave_type.id, year, for_update=lock)
    if balance is not None:
        return balance

    carried = await _carry_forward_days(session, company_id, employee_id, leave_type, year)
    allocated = Decimal(leave_type.days_allowed or 0) + carried

    stmt = (
        pg_insert(LeaveBalance)
        .values(
            company_id=company_id,
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            year=year,
            allocated=allocated,
            used=_ZERO,
            pending=_ZERO,
            carried_forward=carried,
        )
        .on_conflict_do_nothing(index_elements=["company_id", "employee_id", "leave_type_id", "year"])
    )
    await session.execute(stmt)

    balance = await _select_balance(session, company_id, employee_id, leave_type.id, year, for_update=lock)
    if balance is None:
        raise LedgerInvariantViolationError("Balance row vanished after initialisation")
    return balance


async def reserve(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    year: int,
    days: Decimal,
) -> LeaveBalance:
    """Hold ``days`` against the balance as ``pending``.

    Capped types require ``available >= days``; unpaid and unlimited types
    are always grantable.
    """
    balance = await get_or_init(session, company_id, employee_id, leave_type, year, lock=True)

    if leave_type.is_capped and balance.available < days:
        raise InsufficientBalanceError(available=balance.available, requested=days)

    balance.pending += days
    await session.flush()
    return balance


async def commit(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    days: Decimal,
) -> LeaveBalance:
    """Convert a reservation into used days. Called once, at final approval."""
    balance = await _lock_for_settlement(session, company_id, employee_id, leave_type_id, year, days)
    balance.pending -= days
    balance.used += days
    await session.flush()
    return balance


async def release(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    days: Decimal,
) -> LeaveBalance:
    """Return a reservation to the available balance. Called once, on rejection."""
    balance = await _lock_for_settlement(session, company_id, employee_id, leave_type_id, year, days)
    balance.pending -= days
    await session.flush()
    return balance


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_employee_balances(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    year: int,
) -> BalanceListResponse:
    """Balances for every active leave type, initialising missing rows."""
    leave_types = await ensure_leave_types(session, company_id)

    items: list[BalanceResponse] = []
    for leave_type in leave_types:
        balance = await get_or_init(session, company_id, employee_id, leave_type, year)
        items.append(_build_balance_response(balance, leave_type))

    await session.commit()
    return BalanceListResponse(items=items, total=len(items))


async def list_company_balances(
    session: AsyncSession,
    company_id: uuid.UUID,
    year: int,
    employee_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 100,
) -> BalanceListResponse:
    """Existing balances across the company for a year, ordered by employee then type.

    Rows are not initialised here; employees who never read or requested
    leave for ``year`` have none.
    """
    base_filters = [
        col(LeaveBalance.company_id) == company_id,
        col(LeaveBalance.year) == year,
        col(LeaveType.deleted_at).is_(None),
    ]
    if employee_id is not None:
        base_filters.append(col(LeaveBalance.employee_id) == employee_id)
    if leave_type_id is not None:
        base_filters.append(col(LeaveBalance.leave_type_id) == leave_type_id)

    count_result = await session.execute(
        select(func.count())
        .select_from(LeaveBalance)
        .join(LeaveType, col(LeaveType.id) == col(LeaveBalance.leave_type_id))
        .where(*base_filters)
    )
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveBalance, LeaveType)
        .join(LeaveType, col(LeaveType.id) == col(LeaveBalance.leave_type_id))
        .where(*base_filters)
        .order_by(col(LeaveBalance.employee_id), col(LeaveType.name))
        .offset(offset)
        .limit(limit)
    )
    items = [_build_balance_response(balance, leave_type) for balance, leave_type in result.all()]
    return BalanceListResponse(items=items, total=total)


# ---------------------------------------------------------------------------
# Write path: admin allocation adjustments
# ---------------------------------------------------------------------------


async def adjust_allocation(
    session: AsyncSession,
    auth: AuthContext,
    payload: AllocationAdjustmentPayload,
) -> BalanceResponse:
    """Add a signed number of days to ``allocated``.

    ``used`` and ``pending`` are untouched; for capped types the result may
    not drop below what is already used or reserved.
    """
    leave_type = await get_leave_type_or_404(session, auth.company_id, payload.leave_type_id)
    balance = await get_or_init(
        session, auth.company_id, payload.employee_id, leave_type, payload.year, lock=True
    )
    before = model_to_audit_dict(balance)

    new_allocated = balance.allocated + payload.delta_days
    if new_allocated < _ZERO:
        raise AppError("Allocation cannot be negative", status_code=status.HTTP_400_BAD_REQUEST)
    if leave_type.is_capped and new_allocated < balance.used + balance.pending:
        raise AppError(
            f"Allocation cannot drop below used and pending days ({balance.used + balance.pending})",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    balance.allocated = new_allocated
    await session.flush()
    await session.commit()
    await session.refresh(balance)

    logger.info(
        "Allocation adjusted: company=%s employee=%s type=%s year=%s delta=%s",
        auth.company_id,
        payload.employee_id,
        leave_type.id,
        payload.year,
        payload.delta_days,
    )
    await record_audit(
        company_id=auth.company_id,
        actor_id=auth.user_id,
        action=AuditAction.ALLOCATION_ADJUSTED,
        entity_type=AuditEntityType.LEAVE_BALANCE,
        entity_id=payload.employee_id,
        metadata={
            "reason": payload.reason,
            "delta_days": str(payload.delta_days),
            "before": before,
            "after": model_to_audit_dict(balance),
        },
    )
    return _build_balance_response(balance, leave_type)


async def bulk_adjust_allocations(
    session: AsyncSession,
    auth: AuthContext,
    payload: BulkAllocationPayload,
) -> BalanceListResponse:
    """Reset or shift ``allocated`` on every balance of one leave type and year.

    Only existing rows are touched. The change is all or nothing: if any
    capped balance would drop below its used and pending days, nothing is
    written.
    """
    leave_type = await get_leave_type_or_404(session, auth.company_id, payload.leave_type_id)

    result = await session.execute(
        select(LeaveBalance)
        .where(
            col(LeaveBalance.company_id) == auth.company_id,
            col(LeaveBalance.leave_type_id) == leave_type.id,
            col(LeaveBalance.year) == payload.year,
        )
        .order_by(col(LeaveBalance.employee_id))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    balances = list(result.scalars().all())

    planned: list[tuple[LeaveBalance, Decimal]] = []
    for balance in balances:
        if payload.action == BulkAllocationAction.RESET_ALLOCATED:
            new_allocated = payload.value
        else:
            new_allocated = balance.allocated + payload.value

        if new_allocated < _ZERO:
            raise AppError(
                "Allocation cannot be negative",
                status_code=status.HTTP_400_BAD_REQUEST,
                context={"employee_id": str(balance.employee_id)},
            )
        if leave_type.is_capped and new_allocated < balance.used + balance.pending:
            raise AppError(
                f"Allocation cannot drop below used and pending days ({balance.used + balance.pending})",
                status_code=status.HTTP_400_BAD_REQUEST,
                context={"employee_id": str(balance.employee_id)},
            )
        planned.append((balance, new_allocated))

    changes: list[tuple[LeaveBalance, dict[str, Any]]] = []
    for balance, new_allocated in planned:
        changes.append((balance, model_to_audit_dict(balance)))
        balance.allocated = new_allocated

    await session.flush()
    await session.commit()

    logger.info(
        "Bulk allocation %s: company=%s type=%s year=%s value=%s balances=%s",
        payload.action.value,
        auth.company_id,
        leave_type.id,
        payload.year,
        payload.value,
        len(changes),
    )
    for balance, before in changes:
        await record_audit(
            company_id=auth.company_id,
            actor_id=auth.user_id,
            action=AuditAction.ALLOCATION_BULK_ADJUSTED,
            entity_type=AuditEntityType.LEAVE_BALANCE,
            entity_id=balance.employee_id,
            metadata={
                "reason": payload.reason,
                "bulk_action": payload.action.value,
                "value": str(payload.value),
                "before": before,
                "after": model_to_audit_dict(balance),
            },
        )

    items = [_build_balance_response(balance, leave_type) for balance, _ in changes]
    return BalanceListResponse(items=items, total=len(items))
