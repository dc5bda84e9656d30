from sqlmodel import SQLModel

from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.base import TimestampMixin, UUIDBase
from leave_ledger.models.enums import (
    AuditAction,
    AuditEntityType,
    NotificationTemplate,
    RequestStatus,
    ReviewStage,
    Role,
)
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.request import LeaveRequest

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveType",
    "NotificationTemplate",
    "RequestStatus",
    "ReviewStage",
    "Role",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
]
