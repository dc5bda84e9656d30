from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    context: dict[str, Any] | None = None


class AppError(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.context = context
        super().__init__(self.message)


class InsufficientBalanceError(AppError):
    """The balance cannot cover the requested days."""

    def __init__(self, available: Decimal, requested: Decimal) -> None:
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient leave balance. Available: {available}, requested: {requested}",
            status_code=status.HTTP_400_BAD_REQUEST,
            context={"available": str(available), "requested": str(requested)},
        )


class UnknownLeaveTypeError(AppError):
    def __init__(self, leave_type_id: uuid.UUID) -> None:
        self.leave_type_id = leave_type_id
        super().__init__(
            "Leave type not found",
            status_code=status.HTTP_404_NOT_FOUND,
            context={"leave_type_id": str(leave_type_id)},
        )


class RequestNotFoundError(AppError):
    def __init__(self, request_id: uuid.UUID) -> None:
        self.request_id = request_id
        super().__init__(
            "Leave request not found",
            status_code=status.HTTP_404_NOT_FOUND,
            context={"request_id": str(request_id)},
        )


class EmployeeNotFoundError(AppError):
    def __init__(self, employee_id: uuid.UUID) -> None:
        self.employee_id = employee_id
        super().__init__(
            "Employee not found",
            status_code=status.HTTP_404_NOT_FOUND,
            context={"employee_id": str(employee_id)},
        )


class AlreadyFinalizedError(AppError):
    """Review attempted on an approved or rejected request."""

    def __init__(self, current_status: str) -> None:
        self.current_status = current_status
        super().__init__(
            f"Leave request is already {current_status}",
            status_code=status.HTTP_409_CONFLICT,
            context={"status": current_status},
        )


class StageMismatchError(AppError):
    """The reviewer acted on a stage the request has already left."""

    def __init__(self, expected_stage: str, current_stage: str) -> None:
        self.expected_stage = expected_stage
        self.current_stage = current_stage
        super().__init__(
            f"Leave request moved to the {current_stage} stage",
            status_code=status.HTTP_409_CONFLICT,
            context={"expected_stage": expected_stage, "current_stage": current_stage},
        )


class StageAuthorityViolationError(AppError):
    """The actor may not review at the request's current stage."""

    def __init__(self, required_stage: str, actor_role: str, reason: str | None = None) -> None:
        self.required_stage = required_stage
        self.actor_role = actor_role
        super().__init__(
            reason or f"Role '{actor_role}' cannot review at the {required_stage} stage",
            status_code=status.HTTP_403_FORBIDDEN,
            context={"required_stage": required_stage, "actor_role": actor_role},
        )


class LeaveTypeInUseError(AppError):
    def __init__(self, leave_type_id: uuid.UUID) -> None:
        self.leave_type_id = leave_type_id
        super().__init__(
            "Leave type is referenced by open leave requests",
            status_code=status.HTTP_409_CONFLICT,
            context={"leave_type_id": str(leave_type_id)},
        )


class LedgerInvariantViolationError(AppError):
    """A commit or release would drive ``pending`` negative.

    Signals a concurrency-control defect upstream; never a user error.
    """

    def __init__(self, message: str, pending: Decimal | None = None, days: Decimal | None = None) -> None:
        self.pending = pending
        self.days = days
        super().__init__(
            message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            context={
                "pending": None if pending is None else str(pending),
                "days": None if days is None else str(days),
            },
        )


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, LedgerInvariantViolationError):
        logger.critical("Ledger invariant violated on %s %s: %s", request.method, request.url.path, exc.message)
    elif exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Unhandled application error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
            context=exc.context,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
