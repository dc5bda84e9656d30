# ruff: noqa: TC003
from __future__ import annotations

import logging
import re
import uuid
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_ledger.config import get_settings
from leave_ledger.exceptions import AppError, LeaveTypeInUseError, UnknownLeaveTypeError
from leave_ledger.models.base import now_utc
from leave_ledger.models.enums import OPEN_STATUSES, AuditAction, AuditEntityType
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.request import LeaveRequest
from leave_ledger.schemas.leave_type import LeaveTypeListResponse, LeaveTypeResponse
from leave_ledger.services.audit import model_to_audit_dict, record_audit

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.leave_type import CreateLeaveTypePayload, UpdateLeaveTypePayload

logger = logging.getLogger(__name__)

DEFAULT_LEAVE_TYPES: tuple[dict[str, Any], ...] = (
    {"name": "Annual Leave", "days_allowed": 20, "is_paid": True},
    {"name": "Sick Leave", "days_allowed": 10, "is_paid": True},
    {"name": "Unpaid Leave", "days_allowed": None, "is_paid": False},
)

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_DUPLICATE_NAME = "Leave type with this name already exists for this company"


def slugify(name: str) -> str:
    """'Annual Leave' -> 'annual-leave'."""
    slug = _SLUG_RE.sub("-", name.lower()).strip("-")
    if not slug:
        raise AppError("Leave type name must contain letters or digits", status_code=status.HTTP_400_BAD_REQUEST)
    return slug


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=leave_type.id,
        company_id=leave_type.company_id,
        name=leave_type.name,
        slug=leave_type.slug,
        description=leave_type.description,
        days_allowed=leave_type.days_allowed,
        is_paid=leave_type.is_paid,
        is_unlimited=leave_type.days_allowed is None,
        carry_forward_allowed=leave_type.carry_forward_allowed,
        max_carry_forward_days=leave_type.max_carry_forward_days,
        requires_approval=leave_type.requires_approval,
        created_at=leave_type.created_at,
    )


async def _active_types(session: AsyncSession, company_id: uuid.UUID) -> list[LeaveType]:
    result = await session.execute(
        select(LeaveType)
        .where(
            col(LeaveType.company_id) == company_id,
            col(LeaveType.deleted_at).is_(None),
        )
        .order_by(col(LeaveType.name))
    )
    return list(result.scalars().all())


async def _slug_taken(
    session: AsyncSession,
    company_id: uuid.UUID,
    slug: str,
    exclude_id: uuid.UUID | None = None,
) -> bool:
    query = select(LeaveType.id).where(
        col(LeaveType.company_id) == company_id,
        col(LeaveType.slug) == slug,
        col(LeaveType.deleted_at).is_(None),
    )
    if exclude_id is not None:
        query = query.where(col(LeaveType.id) != exclude_id)
    result = await session.execute(query)
    return result.first() is not None


async def _seed_default_types(session: AsyncSession, company_id: uuid.UUID) -> None:
    """Insert the default catalog; rows another caller already seeded are skipped."""
    rows = [
        {
            "id": uuid.uuid4(),
            "company_id": company_id,
            "name": default["name"],
            "slug": slugify(default["name"]),
            "description": f"Standard {default['name']}",
            "days_allowed": default["days_allowed"],
            "is_paid": default["is_paid"],
            "carry_forward_allowed": False,
            "max_carry_forward_days": 0,
            "requires_approval": True,
        }
        for default in DEFAULT_LEAVE_TYPES
    ]
    stmt = (
        pg_insert(LeaveType)
        .values(rows)
        .on_conflict_do_nothing(
            index_elements=["company_id", "slug"],
            index_where=sa.text("deleted_at IS NULL"),
        )
    )
    await session.execute(stmt)
    await session.commit()
    logger.info("Seeded default leave types for company %s", company_id)


async def get_leave_type_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    *,
    for_share: bool = False,
    for_update: bool = False,
) -> LeaveType:
    """Fetch a non-deleted leave type scoped to company.

    ``for_share`` holds the row against a concurrent delete until commit;
    ``for_update`` is taken by the delete itself.
    """
    query = select(LeaveType).where(
        col(LeaveType.id) == leave_type_id,
        col(LeaveType.company_id) == company_id,
        col(LeaveType.deleted_at).is_(None),
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    elif for_share:
        query = query.with_for_update(read=True).execution_options(populate_existing=True)
    result = await session.execute(query)
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise UnknownLeaveTypeError(leave_type_id)
    return leave_type


async def ensure_leave_types(session: AsyncSession, company_id: uuid.UUID) -> list[LeaveType]:
    """Return the active catalog, seeding the defaults for a company that never had one.

    A company whose types were all soft-deleted is not re-seeded, and nothing
    is seeded when ``seed_default_leave_types`` is off.
    """
    types = await _active_types(session, company_id)
    if types:
        return types

    count_result = await session.execute(
        select(func.count()).select_from(LeaveType).where(col(LeaveType.company_id) == company_id)
    )
    if count_result.scalar_one() > 0 or not get_settings().seed_default_leave_types:
        return types

    await _seed_default_types(session, company_id)
    return await _active_types(session, company_id)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def list_leave_types(session: AsyncSession, company_id: uuid.UUID) -> LeaveTypeListResponse:
    types = await ensure_leave_types(session, company_id)
    return LeaveTypeListResponse(items=[_build_leave_type_response(t) for t in types], total=len(types))


async def get_leave_type(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeaveTypeResponse:
    leave_type = await get_leave_type_or_404(session, company_id, leave_type_id)
    return _build_leave_type_response(leave_type)


async def create_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveTypePayload,
) -> LeaveTypeResponse:
    """Create a leave type. The slug is derived from the name."""
    slug = slugify(payload.name)
    if await _slug_taken(session, auth.company_id, slug):
        raise AppError(_DUPLICATE_NAME, status_code=status.HTTP_409_CONFLICT)

    leave_type = LeaveType(
        company_id=auth.company_id,
        slug=slug,
        **payload.model_dump(),
    )
    session.add(leave_type)
    try:
        await session.flush()
    except IntegrityError:
        raise AppError(_DUPLICATE_NAME, status_code=status.HTTP_409_CONFLICT) from None

    await session.commit()
    await session.refresh(leave_type)

    await record_audit(
        company_id=auth.company_id,
        actor_id=auth.user_id,
        action=AuditAction.LEAVE_TYPE_CREATED,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        metadata={"after": model_to_audit_dict(leave_type)},
    )
    return _build_leave_type_response(leave_type)


async def update_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypePayload,
) -> LeaveTypeResponse:
    """Apply a partial update. Renaming re-derives the slug.

    Existing balances keep their allocation; a changed ``days_allowed``
    applies to balances initialised afterwards.
    """
    leave_type = await get_leave_type_or_404(session, auth.company_id, leave_type_id)
    before = model_to_audit_dict(leave_type)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)
    else:
        slug = slugify(changes["name"])
        if await _slug_taken(session, auth.company_id, slug, exclude_id=leave_type.id):
            raise AppError(_DUPLICATE_NAME, status_code=status.HTTP_409_CONFLICT)
        leave_type.slug = slug

    for key, value in changes.items():
        if value is None and key not in ("days_allowed", "description"):
            continue
        setattr(leave_type, key, value)
    leave_type.updated_at = now_utc()

    await session.flush()
    await session.commit()
    await session.refresh(leave_type)

    await record_audit(
        company_id=auth.company_id,
        actor_id=auth.user_id,
        action=AuditAction.LEAVE_TYPE_UPDATED,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        metadata={"before": before, "after": model_to_audit_dict(leave_type)},
    )
    return _build_leave_type_response(leave_type)


async def delete_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
) -> None:
    """Soft-delete a leave type that no open request references."""
    leave_type = await get_leave_type_or_404(session, auth.company_id, leave_type_id, for_update=True)

    open_result = await session.execute(
        select(func.count())
        .select_from(LeaveRequest)
        .where(
            col(LeaveRequest.company_id) == auth.company_id,
            col(LeaveRequest.leave_type_id) == leave_type.id,
            col(LeaveRequest.status).in_([s.value for s in OPEN_STATUSES]),
        )
    )
    if open_result.scalar_one() > 0:
        raise LeaveTypeInUseError(leave_type.id)

    leave_type.deleted_at = now_utc()
    await session.flush()
    await session.commit()

    await record_audit(
        company_id=auth.company_id,
        actor_id=auth.user_id,
        action=AuditAction.LEAVE_TYPE_DELETED,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        metadata={"name": leave_type.name, "slug": leave_type.slug},
    )
