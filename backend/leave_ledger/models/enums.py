from __future__ import annotations

import enum


class Role(enum.StrEnum):
    """Organisational role of a user within a company."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    DEPARTMENT_HEAD = "department_head"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def is_manager(self) -> bool:
        return self in (Role.MANAGER, Role.DEPARTMENT_HEAD)

    @property
    def is_administrative(self) -> bool:
        return self in (Role.ADMIN, Role.OWNER)


class ReviewStage(enum.StrEnum):
    """Tier of the approval chain a request is waiting on."""

    MANAGER = "manager"
    ADMIN = "admin"
    OWNER = "owner"
    NONE = "none"


class RequestStatus(enum.StrEnum):
    """State machine for leave requests."""

    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.APPROVED, RequestStatus.REJECTED)


OPEN_STATUSES = (RequestStatus.PENDING, RequestStatus.IN_REVIEW)


class BulkAllocationAction(enum.StrEnum):
    """How a bulk adjustment changes ``allocated`` on every matching balance."""

    RESET_ALLOCATED = "reset_allocated"
    ADD_ALLOCATED = "add_allocated"


class AuditEntityType(enum.StrEnum):
    """Entity type reported to the audit sink."""

    LEAVE_REQUEST = "leave_request"
    LEAVE_TYPE = "leave_type"
    LEAVE_BALANCE = "leave_balance"


class AuditAction(enum.StrEnum):
    """Action reported to the audit sink."""

    LEAVE_REQUESTED = "LEAVE_REQUESTED"
    LEAVE_ESCALATED = "LEAVE_ESCALATED"
    LEAVE_APPROVED = "LEAVE_REQUEST_APPROVED"
    LEAVE_REJECTED = "LEAVE_REQUEST_REJECTED"
    LEAVE_TYPE_CREATED = "LEAVE_TYPE_CREATED"
    LEAVE_TYPE_UPDATED = "LEAVE_TYPE_UPDATED"
    LEAVE_TYPE_DELETED = "LEAVE_TYPE_DELETED"
    ALLOCATION_ADJUSTED = "ALLOCATION_ADJUSTED"
    ALLOCATION_BULK_ADJUSTED = "ALLOCATION_BULK_ADJUSTED"


class NotificationTemplate(enum.StrEnum):
    """Notification templates sent through the notification sink."""

    LEAVE_REQUEST_SUBMITTED = "leave_request_submitted"
    LEAVE_REVIEW_REQUIRED = "leave_review_required"
    LEAVE_REQUEST_APPROVED = "leave_request_approved"
    LEAVE_REQUEST_REJECTED = "leave_request_rejected"
