"""Tests for the employee directory stub and the audit/notification sinks."""

from __future__ import annotations

import logging
import uuid
from typing import Any

import pytest

from leave_ledger.models.enums import AuditAction, AuditEntityType, NotificationTemplate, Role
from leave_ledger.services.audit import AuditSink, InMemoryAuditSink, LoggingAuditSink, record_audit
from leave_ledger.services.employee import EmployeeInfo, EmployeeService, InMemoryEmployeeService
from leave_ledger.services.notification import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
    NotificationSink,
    notify_users,
)

COMPANY_A = uuid.uuid4()
COMPANY_B = uuid.uuid4()


def _make_employee(company_id: uuid.UUID, name: str = "Jane", role: Role = Role.EMPLOYEE) -> EmployeeInfo:
    return EmployeeInfo(
        id=uuid.uuid4(),
        company_id=company_id,
        first_name=name,
        last_name="Doe",
        email=f"{name.lower()}@example.com",
        role=role,
    )


class _BrokenAuditSink:
    async def record(self, *args: Any, **kwargs: Any) -> None:
        raise RuntimeError("audit store down")


class _FlakyNotificationSink:
    """Fails for one user, records the rest."""

    def __init__(self, failing_user: uuid.UUID) -> None:
        self.failing_user = failing_user
        self.delivered: list[uuid.UUID] = []

    async def notify(self, user_id: uuid.UUID, template: NotificationTemplate, payload: dict[str, Any]) -> None:
        if user_id == self.failing_user:
            raise RuntimeError("smtp down")
        self.delivered.append(user_id)


# ---------------------------------------------------------------------------
# InMemoryEmployeeService
# ---------------------------------------------------------------------------


async def test_employee_service_get_not_found() -> None:
    svc = InMemoryEmployeeService()
    assert await svc.get_employee(COMPANY_A, uuid.uuid4()) is None


async def test_employee_service_seed_and_get() -> None:
    svc = InMemoryEmployeeService()
    emp = _make_employee(COMPANY_A, role=Role.MANAGER)
    svc.seed(emp)
    result = await svc.get_employee(COMPANY_A, emp.id)
    assert result is not None
    assert result.role == Role.MANAGER
    assert result.full_name == "Jane Doe"


async def test_employee_service_is_company_scoped() -> None:
    svc = InMemoryEmployeeService()
    emp = _make_employee(COMPANY_A)
    svc.seed(emp)
    assert await svc.get_employee(COMPANY_B, emp.id) is None


async def test_employee_service_list_filters_by_company() -> None:
    svc = InMemoryEmployeeService()
    emp_a = _make_employee(COMPANY_A, "Alice")
    emp_b = _make_employee(COMPANY_B, "Bob")
    svc.seed(emp_a)
    svc.seed(emp_b)
    result = await svc.list_employees(COMPANY_A)
    assert [e.id for e in result] == [emp_a.id]


def test_stubs_satisfy_protocols() -> None:
    assert isinstance(InMemoryEmployeeService(), EmployeeService)
    assert isinstance(InMemoryAuditSink(), AuditSink)
    assert isinstance(LoggingAuditSink(), AuditSink)
    assert isinstance(InMemoryNotificationSink(), NotificationSink)
    assert isinstance(LoggingNotificationSink(), NotificationSink)


# ---------------------------------------------------------------------------
# Audit sink
# ---------------------------------------------------------------------------


async def test_record_audit_reaches_sink(audit_sink: InMemoryAuditSink) -> None:
    entity_id = uuid.uuid4()
    await record_audit(
        company_id=COMPANY_A,
        actor_id=uuid.uuid4(),
        action=AuditAction.LEAVE_APPROVED,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=entity_id,
    )
    entries = audit_sink.for_entity(entity_id)
    assert len(entries) == 1
    assert entries[0].action == "LEAVE_REQUEST_APPROVED"
    assert entries[0].entity_type == "leave_request"
    assert entries[0].metadata == {}


async def test_record_audit_swallows_sink_failure(caplog: pytest.LogCaptureFixture) -> None:
    from leave_ledger.services.audit import set_audit_sink

    set_audit_sink(_BrokenAuditSink())
    try:
        with caplog.at_level(logging.ERROR, logger="leave_ledger.services.audit"):
            await record_audit(
                company_id=COMPANY_A,
                actor_id=uuid.uuid4(),
                action=AuditAction.LEAVE_REJECTED,
                entity_type=AuditEntityType.LEAVE_REQUEST,
                entity_id=uuid.uuid4(),
            )
    finally:
        set_audit_sink(LoggingAuditSink())
    assert "Failed to record audit LEAVE_REQUEST_REJECTED" in caplog.text


async def test_logging_audit_sink_logs(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="leave_ledger.services.audit"):
        await LoggingAuditSink().record(COMPANY_A, uuid.uuid4(), "LEAVE_REQUESTED", "leave_request", uuid.uuid4(), {})
    assert "action=LEAVE_REQUESTED" in caplog.text


# ---------------------------------------------------------------------------
# Notification sink
# ---------------------------------------------------------------------------


async def test_notify_users_fans_out(notification_sink: InMemoryNotificationSink) -> None:
    users = [uuid.uuid4(), uuid.uuid4()]
    await notify_users(users, NotificationTemplate.LEAVE_REVIEW_REQUIRED, {"request_id": "r1"})
    assert [n.user_id for n in notification_sink.sent] == users
    assert all(n.template == NotificationTemplate.LEAVE_REVIEW_REQUIRED for n in notification_sink.sent)


async def test_notify_users_continues_after_failure(caplog: pytest.LogCaptureFixture) -> None:
    from leave_ledger.services.notification import set_notification_sink

    failing, ok = uuid.uuid4(), uuid.uuid4()
    sink = _FlakyNotificationSink(failing)
    set_notification_sink(sink)
    try:
        with caplog.at_level(logging.ERROR, logger="leave_ledger.services.notification"):
            await notify_users([failing, ok], NotificationTemplate.LEAVE_REQUEST_APPROVED, {})
    finally:
        set_notification_sink(LoggingNotificationSink())
    assert sink.delivered == [ok]
    assert "Failed to send leave_request_approved notification" in caplog.text
