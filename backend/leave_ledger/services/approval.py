"""Approval routing: which stages a request must clear and who may clear them.

Everything here is pure. Callers fetch the directory snapshot and the
request row; nothing in this module touches the database.
"""

# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from fastapi import status

from leave_ledger.exceptions import AppError, StageAuthorityViolationError
from leave_ledger.models.enums import ReviewStage, Role

if TYPE_CHECKING:
    from leave_ledger.models.request import LeaveRequest
    from leave_ledger.services.employee import EmployeeInfo

# Roles allowed to act at each stage, before the department rule is applied.
STAGE_AUTHORITY: dict[ReviewStage, frozenset[Role]] = {
    ReviewStage.MANAGER: frozenset({Role.MANAGER, Role.DEPARTMENT_HEAD, Role.ADMIN, Role.OWNER}),
    ReviewStage.ADMIN: frozenset({Role.ADMIN, Role.OWNER}),
    ReviewStage.OWNER: frozenset({Role.OWNER}),
    ReviewStage.NONE: frozenset(),
}


def _active_others(directory: Iterable[EmployeeInfo], requester_id: uuid.UUID) -> list[EmployeeInfo]:
    return [e for e in directory if e.is_active and e.id != requester_id]


def has_department_manager(
    department_id: uuid.UUID | None,
    directory: Iterable[EmployeeInfo],
    exclude_id: uuid.UUID,
) -> bool:
    if department_id is None:
        return False
    return any(
        e.role.is_manager and e.department_id == department_id for e in _active_others(directory, exclude_id)
    )


def resolve_chain(requester: EmployeeInfo, directory: Sequence[EmployeeInfo]) -> list[ReviewStage]:
    """Return the ordered approval stages for a request made by ``requester``.

    - admins go straight to the owner;
    - managers and department heads skip the manager tier;
    - employees start at ``manager`` only when an active manager of their
      own department exists, otherwise at ``admin``;
    - ``admin`` is included when some other active admin or owner exists;
    - ``owner`` always closes the chain.
    """
    if requester.role == Role.OWNER:
        raise AppError("Owners do not request leave", status_code=status.HTTP_400_BAD_REQUEST)

    chain: list[ReviewStage] = []

    if requester.role == Role.EMPLOYEE and has_department_manager(
        requester.department_id, directory, requester.id
    ):
        chain.append(ReviewStage.MANAGER)

    if requester.role != Role.ADMIN and any(
        e.role.is_administrative for e in _active_others(directory, requester.id)
    ):
        chain.append(ReviewStage.ADMIN)

    chain.append(ReviewStage.OWNER)
    return chain


def next_stage(chain: Sequence[str], current: ReviewStage) -> ReviewStage | None:
    """Stage following ``current`` in ``chain``, or None when ``current`` is final."""
    stages = [ReviewStage(s) for s in chain]
    try:
        index = stages.index(current)
    except ValueError:
        return None
    if index + 1 >= len(stages):
        return None
    return stages[index + 1]


def check_stage_authority(
    stage: ReviewStage,
    *,
    actor_id: uuid.UUID,
    actor_role: Role,
    actor_department_id: uuid.UUID | None,
    request: LeaveRequest,
    actor_is_active: bool = True,
) -> None:
    """Raise StageAuthorityViolationError unless the actor may review at ``stage``.

    The actor must be an active member of the directory. Admins and owners
    may act at the manager stage. A manager may act only on requests whose
    department snapshot equals their own department.
    """
    if not actor_is_active:
        raise StageAuthorityViolationError(
            stage.value, actor_role.value, reason="Reviewer is not an active member of this company"
        )

    if actor_id == request.employee_id:
        raise StageAuthorityViolationError(
            stage.value, actor_role.value, reason="Reviewers cannot act on their own leave requests"
        )

    if actor_role not in STAGE_AUTHORITY[stage]:
        raise StageAuthorityViolationError(stage.value, actor_role.value)

    if stage == ReviewStage.MANAGER and actor_role.is_manager:
        if actor_department_id is None or actor_department_id != request.department_id:
            raise StageAuthorityViolationError(
                stage.value,
                actor_role.value,
                reason="Managers can only review leave requests within their department",
            )


def reviewers_for_stage(
    stage: ReviewStage,
    department_id: uuid.UUID | None,
    directory: Iterable[EmployeeInfo],
    exclude_id: uuid.UUID,
) -> list[uuid.UUID]:
    """Users to notify that a request is waiting at ``stage``."""
    candidates = _active_others(directory, exclude_id)
    if stage == ReviewStage.MANAGER:
        return [e.id for e in candidates if e.role.is_manager and e.department_id == department_id]
    if stage == ReviewStage.ADMIN:
        admins = [e.id for e in candidates if e.role == Role.ADMIN]
        return admins or [e.id for e in candidates if e.role == Role.OWNER]
    if stage == ReviewStage.OWNER:
        return [e.id for e in candidates if e.role == Role.OWNER]
    return []
