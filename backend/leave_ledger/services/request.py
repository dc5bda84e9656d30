# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from fastapi import status
from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.exceptions import (
    AlreadyFinalizedError,
    AppError,
    EmployeeNotFoundError,
    RequestNotFoundError,
    StageMismatchError,
)
from leave_ledger.models.base import now_utc
from leave_ledger.models.enums import (
    OPEN_STATUSES,
    AuditAction,
    AuditEntityType,
    NotificationTemplate,
    RequestStatus,
    ReviewStage,
)
from leave_ledger.models.request import LeaveRequest
from leave_ledger.schemas.request import LeaveRequestListResponse, LeaveRequestResponse, StageReview
from leave_ledger.services import approval
from leave_ledger.services import balance as ledger
from leave_ledger.services.audit import model_to_audit_dict, record_audit
from leave_ledger.services.duration import count_leave_days
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.leave_type import get_leave_type_or_404
from leave_ledger.services.notification import notify_users

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.models.leave_type import LeaveType
    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.request import ReviewPayload, SubmitLeavePayload
    from leave_ledger.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _stage_review(request: LeaveRequest, stage: ReviewStage) -> StageReview | None:
    reviewer_id = getattr(request, f"{stage.value}_reviewer_id")
    if reviewer_id is None:
        return None
    return StageReview(
        reviewer_id=reviewer_id,
        reviewed_at=getattr(request, f"{stage.value}_reviewed_at"),
        notes=getattr(request, f"{stage.value}_notes"),
    )


def _build_request_response(request: LeaveRequest) -> LeaveRequestResponse:
    """Map a request model to its response schema."""
    return LeaveRequestResponse(
        id=request.id,
        company_id=request.company_id,
        employee_id=request.employee_id,
        department_id=request.department_id,
        leave_type_id=request.leave_type_id,
        start_date=request.start_date,
        end_date=request.end_date,
        half_day_start=request.half_day_start,
        half_day_end=request.half_day_end,
        days_requested=request.days_requested,
        reason=request.reason,
        status=RequestStatus(request.status),
        current_stage=ReviewStage(request.current_stage),
        approval_chain=[ReviewStage(s) for s in request.approval_chain],
        manager_review=_stage_review(request, ReviewStage.MANAGER),
        admin_review=_stage_review(request, ReviewStage.ADMIN),
        owner_review=_stage_review(request, ReviewStage.OWNER),
        created_at=request.created_at,
    )


def _notification_payload(request: LeaveRequest, requester_name: str, leave_type_name: str) -> dict[str, Any]:
    return {
        "request_id": str(request.id),
        "requester_id": str(request.employee_id),
        "requester_name": requester_name,
        "leave_type": leave_type_name,
        "start_date": request.start_date.isoformat(),
        "end_date": request.end_date.isoformat(),
        "days": str(request.days_requested),
        "status": request.status,
        "stage": request.current_stage,
    }


async def _get_request_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveRequest:
    """Fetch a request by ID scoped to company, optionally taking its row lock."""
    query = select(LeaveRequest).where(
        col(LeaveRequest.id) == request_id,
        col(LeaveRequest.company_id) == company_id,
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise RequestNotFoundError(request_id)
    return request


async def _lock_employee_submissions(session: AsyncSession, company_id: uuid.UUID, employee_id: uuid.UUID) -> None:
    """Serialize submissions by one employee until the transaction ends."""
    await session.execute(
        select(func.pg_advisory_xact_lock(func.hashtext(str(company_id)), func.hashtext(str(employee_id))))
    )


async def _check_request_overlap(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> None:
    """Raise 409 if an open or approved request overlaps the date range."""
    active_statuses = [*(s.value for s in OPEN_STATUSES), RequestStatus.APPROVED.value]
    result = await session.execute(
        select(LeaveRequest.id)
        .where(
            col(LeaveRequest.company_id) == company_id,
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.status).in_(active_statuses),
            col(LeaveRequest.start_date) <= end_date,
            col(LeaveRequest.end_date) >= start_date,
        )
        .limit(1)
    )
    if result.first() is not None:
        raise AppError(
            "Request overlaps with an existing pending or approved leave request",
            status_code=status.HTTP_409_CONFLICT,
        )


def _stamp_review(
    request: LeaveRequest,
    stage: ReviewStage,
    reviewer_id: uuid.UUID,
    notes: str | None,
) -> None:
    setattr(request, f"{stage.value}_reviewer_id", reviewer_id)
    setattr(request, f"{stage.value}_reviewed_at", now_utc())
    setattr(request, f"{stage.value}_notes", notes)


async def _notify_after_submit(
    request: LeaveRequest,
    requester: EmployeeInfo,
    leave_type: LeaveType,
    directory: list[EmployeeInfo],
) -> None:
    payload = _notification_payload(request, requester.full_name, leave_type.name)
    if request.status == RequestStatus.APPROVED:
        await notify_users([request.employee_id], NotificationTemplate.LEAVE_REQUEST_APPROVED, payload)
        return

    await notify_users([request.employee_id], NotificationTemplate.LEAVE_REQUEST_SUBMITTED, payload)
    reviewers = approval.reviewers_for_stage(
        ReviewStage(request.current_stage), request.department_id, directory, request.employee_id
    )
    await notify_users(reviewers, NotificationTemplate.LEAVE_REVIEW_REQUIRED, payload)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitLeavePayload,
) -> LeaveRequestResponse:
    """Submit a leave request for the calling user.

    Flow (one transaction):
    1. Resolve the requester from the employee directory
    2. Resolve the leave type and hold it against a concurrent delete
    3. Count requested days
    4. Take the per-employee submission lock, then reject overlapping requests
    5. Resolve the approval chain
    6. Reserve the days on the balance (row locked)
    7. Insert the request at the chain's first stage, or approve and commit
       the reservation immediately when the type needs no approval
    8. Commit, then audit and notify
    """
    directory_service = get_employee_service()

    # 1. Requester.
    requester = await directory_service.get_employee(auth.company_id, auth.user_id)
    if requester is None or not requester.is_active:
        raise EmployeeNotFoundError(auth.user_id)

    # 2. Leave type.
    leave_type = await get_leave_type_or_404(session, auth.company_id, payload.leave_type_id, for_share=True)

    # 3. Days.
    days = count_leave_days(payload.start_date, payload.end_date, payload.half_day_start, payload.half_day_end)
    year = payload.start_date.year

    # 4. Overlap, checked under a per-employee lock.
    await _lock_employee_submissions(session, auth.company_id, requester.id)
    await _check_request_overlap(session, auth.company_id, requester.id, payload.start_date, payload.end_date)

    # 5. Chain first, so an owner is refused before anything is reserved.
    directory = await directory_service.list_employees(auth.company_id)
    chain = approval.resolve_chain(requester, directory)

    # 6. Reserve. Raises InsufficientBalanceError before any request row exists.
    await ledger.reserve(session, auth.company_id, requester.id, leave_type, year, days)

    # 7. Request row.
    leave_request = LeaveRequest(
        company_id=auth.company_id,
        employee_id=requester.id,
        department_id=requester.department_id,
        leave_type_id=leave_type.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        half_day_start=payload.half_day_start,
        half_day_end=payload.half_day_end,
        days_requested=days,
        year=year,
        reason=payload.reason,
        status=RequestStatus.PENDING.value,
        current_stage=chain[0].value,
        approval_chain=[s.value for s in chain],
    )

    if not leave_type.requires_approval:
        await ledger.commit(session, auth.company_id, requester.id, leave_type.id, year, days)
        leave_request.status = RequestStatus.APPROVED.value
        leave_request.current_stage = ReviewStage.NONE.value

    session.add(leave_request)
    await session.flush()

    # 8. Commit.
    await session.commit()
    await session.refresh(leave_request)

    logger.info(
        "Leave request %s submitted by %s: %s days of %s, status=%s stage=%s",
        leave_request.id,
        requester.id,
        days,
        leave_type.slug,
        leave_request.status,
        leave_request.current_stage,
    )

    await record_audit(
        company_id=auth.company_id,
        actor_id=auth.user_id,
        action=AuditAction.LEAVE_REQUESTED,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=leave_request.id,
        metadata={
            "start_date": leave_request.start_date.isoformat(),
            "end_date": leave_request.end_date.isoformat(),
            "days": str(days),
            "leave_type_id": str(leave_type.id),
            "approval_chain": leave_request.approval_chain,
            "status": leave_request.status,
        },
    )
    await _notify_after_submit(leave_request, requester, leave_type, directory)

    return _build_request_response(leave_request)


async def review_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: ReviewPayload,
) -> LeaveRequestResponse:
    """Approve or reject a request at its current stage.

    Flow (one transaction):
    1. Lock the request row (a concurrent reviewer waits here)
    2. Refuse terminal requests
    3. Refuse a stale ``expected_stage``
    4. Check the actor's authority for the current stage
    5. Stamp the stage's reviewer metadata
    6. Escalate, or settle the ledger on a terminal outcome
    7. Commit, then audit and notify
    """
    # 1. Lock.
    leave_request = await _get_request_or_404(session, auth.company_id, request_id, for_update=True)

    # 2. Terminal.
    current_status = RequestStatus(leave_request.status)
    if current_status.is_terminal:
        raise AlreadyFinalizedError(current_status.value)

    # 3. Stale view.
    stage = ReviewStage(leave_request.current_stage)
    if payload.expected_stage is not None and payload.expected_stage != stage:
        raise StageMismatchError(payload.expected_stage.value, stage.value)

    # 4. Authority.
    directory_service = get_employee_service()
    actor = await directory_service.get_employee(auth.company_id, auth.user_id)
    approval.check_stage_authority(
        stage,
        actor_id=auth.user_id,
        actor_role=auth.role,
        actor_department_id=actor.department_id if actor else None,
        request=leave_request,
        actor_is_active=actor is not None and actor.is_active,
    )

    # 5. Reviewer metadata.
    before = model_to_audit_dict(leave_request)
    _stamp_review(leave_request, stage, auth.user_id, payload.notes)

    # 6. Transition.
    following = approval.next_stage(leave_request.approval_chain, stage) if payload.approved else None
    if payload.approved and following is not None:
        leave_request.status = RequestStatus.IN_REVIEW.value
        leave_request.current_stage = following.value
        audit_action = AuditAction.LEAVE_ESCALATED
    elif payload.approved:
        await ledger.commit(
            session,
            leave_request.company_id,
            leave_request.employee_id,
            leave_request.leave_type_id,
            leave_request.year,
            leave_request.days_requested,
        )
        leave_request.status = RequestStatus.APPROVED.value
        leave_request.current_stage = ReviewStage.NONE.value
        audit_action = AuditAction.LEAVE_APPROVED
    else:
        await ledger.release(
            session,
            leave_request.company_id,
            leave_request.employee_id,
            leave_request.leave_type_id,
            leave_request.year,
            leave_request.days_requested,
        )
        leave_request.status = RequestStatus.REJECTED.value
        leave_request.current_stage = ReviewStage.NONE.value
        audit_action = AuditAction.LEAVE_REJECTED

    await session.flush()

    # 7. Commit.
    await session.commit()
    await session.refresh(leave_request)

    logger.info(
        "Leave request %s reviewed by %s (%s) at %s stage: status=%s stage=%s",
        leave_request.id,
        auth.user_id,
        auth.role.value,
        stage.value,
        leave_request.status,
        leave_request.current_stage,
    )

    await record_audit(
        company_id=auth.company_id,
        actor_id=auth.user_id,
        action=audit_action,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=leave_request.id,
        metadata={
            "stage": stage.value,
            "approved": payload.approved,
            "notes": payload.notes,
            "before": before,
            "after": model_to_audit_dict(leave_request),
        },
    )
    await _notify_after_review(session, leave_request)

    return _build_request_response(leave_request)


async def _notify_after_review(session: AsyncSession, leave_request: LeaveRequest) -> None:
    directory_service = get_employee_service()
    try:
        requester = await directory_service.get_employee(leave_request.company_id, leave_request.employee_id)
        leave_type = await get_leave_type_or_404(session, leave_request.company_id, leave_request.leave_type_id)
        directory = await directory_service.list_employees(leave_request.company_id)
        requester_name = requester.full_name if requester else ""
        leave_type_name = leave_type.name
    except Exception:
        logger.exception("Failed to build notification context for leave request %s", leave_request.id)
        return

    payload = _notification_payload(leave_request, requester_name, leave_type_name)
    request_status = RequestStatus(leave_request.status)

    if request_status == RequestStatus.APPROVED:
        await notify_users([leave_request.employee_id], NotificationTemplate.LEAVE_REQUEST_APPROVED, payload)
    elif request_status == RequestStatus.REJECTED:
        await notify_users([leave_request.employee_id], NotificationTemplate.LEAVE_REQUEST_REJECTED, payload)
    else:
        reviewers = approval.reviewers_for_stage(
            ReviewStage(leave_request.current_stage),
            leave_request.department_id,
            directory,
            leave_request.employee_id,
        )
        await notify_users(reviewers, NotificationTemplate.LEAVE_REVIEW_REQUIRED, payload)


async def get_request(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Get a single request by ID."""
    leave_request = await _get_request_or_404(session, company_id, request_id)
    return _build_request_response(leave_request)


async def list_requests(
    session: AsyncSession,
    company_id: uuid.UUID,
    status_filter: RequestStatus | None = None,
    employee_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
    stage: ReviewStage | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveRequestListResponse:
    """List requests with optional filters, ordered by created_at DESC."""
    base_filters = [col(LeaveRequest.company_id) == company_id]

    if status_filter is not None:
        base_filters.append(col(LeaveRequest.status) == status_filter.value)
    if employee_id is not None:
        base_filters.append(col(LeaveRequest.employee_id) == employee_id)
    if leave_type_id is not None:
        base_filters.append(col(LeaveRequest.leave_type_id) == leave_type_id)
    if stage is not None:
        base_filters.append(col(LeaveRequest.current_stage) == stage.value)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*base_filters)
        .order_by(col(LeaveRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())

    return LeaveRequestListResponse(
        items=[_build_request_response(r) for r in requests],
        total=total,
    )
