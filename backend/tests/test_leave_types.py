"""Tests for the leave type registry: default seeding, CRUD and soft delete."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.config import Settings
from leave_ledger.exceptions import AppError
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.services import leave_type as leave_type_service
from leave_ledger.services.leave_type import ensure_leave_types, slugify

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.services.audit import InMemoryAuditSink

COMPANY_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()

ADMIN_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(ADMIN_ID),
    "X-Role": "admin",
}
EMPLOYEE_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(uuid.uuid4()),
    "X-Role": "employee",
}
TYPES_URL = f"/companies/{COMPANY_ID}/leave-types"


async def _count_types(session: AsyncSession, company_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(LeaveType).where(col(LeaveType.company_id) == company_id)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------


def test_slugify() -> None:
    assert slugify("Annual Leave") == "annual-leave"
    assert slugify("  Work / Life  Balance! ") == "work-life-balance"


def test_slugify_rejects_symbol_only_name() -> None:
    with pytest.raises(AppError) as exc_info:
        slugify("!!! ---")
    assert exc_info.value.status_code == 400


async def test_create_symbol_only_name_is_bad_request(async_client: AsyncClient) -> None:
    resp = await async_client.post(TYPES_URL, json={"name": "???", "days_allowed": 3}, headers=ADMIN_HEADERS)
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Default seeding
# ---------------------------------------------------------------------------


async def test_list_seeds_defaults(async_client: AsyncClient) -> None:
    resp = await async_client.get(TYPES_URL, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 3
    by_slug = {t["slug"]: t for t in data["items"]}
    assert set(by_slug) == {"annual-leave", "sick-leave", "unpaid-leave"}
    assert by_slug["annual-leave"]["days_allowed"] == 20
    assert by_slug["sick-leave"]["days_allowed"] == 10
    assert by_slug["unpaid-leave"]["is_unlimited"] is True
    assert by_slug["unpaid-leave"]["is_paid"] is False


async def test_seeding_is_idempotent(db_session: AsyncSession) -> None:
    company_id = uuid.uuid4()
    first = await ensure_leave_types(db_session, company_id)
    second = await ensure_leave_types(db_session, company_id)
    assert len(first) == 3
    assert {t.id for t in first} == {t.id for t in second}
    assert await _count_types(db_session, company_id) == 3


async def test_seeding_can_be_disabled(db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(leave_type_service, "get_settings", lambda: Settings(seed_default_leave_types=False))
    company_id = uuid.uuid4()
    assert await ensure_leave_types(db_session, company_id) == []
    assert await _count_types(db_session, company_id) == 0


async def test_fully_deleted_catalog_is_not_reseeded(db_session: AsyncSession) -> None:
    from leave_ledger.models.base import now_utc

    company_id = uuid.uuid4()
    for leave_type in await ensure_leave_types(db_session, company_id):
        leave_type.deleted_at = now_utc()
    await db_session.flush()

    assert await ensure_leave_types(db_session, company_id) == []
    assert await _count_types(db_session, company_id) == 3


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def test_create_leave_type(async_client: AsyncClient, audit_sink: InMemoryAuditSink) -> None:
    resp = await async_client.post(
        TYPES_URL,
        json={"name": "Parental Leave", "days_allowed": 30, "carry_forward_allowed": True, "max_carry_forward_days": 5},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["slug"] == "parental-leave"
    assert data["company_id"] == str(COMPANY_ID)
    assert data["is_unlimited"] is False

    entries = audit_sink.for_entity(uuid.UUID(data["id"]))
    assert [e.action for e in entries] == ["LEAVE_TYPE_CREATED"]


async def test_create_duplicate_name_conflicts(async_client: AsyncClient) -> None:
    resp = await async_client.post(TYPES_URL, json={"name": "Study Leave"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 201
    resp = await async_client.post(TYPES_URL, json={"name": "study  leave"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 409


async def test_create_requires_admin(async_client: AsyncClient) -> None:
    resp = await async_client.post(TYPES_URL, json={"name": "Nap Leave"}, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403


async def test_owner_may_create(async_client: AsyncClient) -> None:
    headers = {**ADMIN_HEADERS, "X-Role": "owner"}
    resp = await async_client.post(TYPES_URL, json={"name": "Sabbatical"}, headers=headers)
    assert resp.status_code == 201


async def test_company_scope_enforced(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"/companies/{uuid.uuid4()}/leave-types", headers=ADMIN_HEADERS)
    assert resp.status_code == 403


async def test_update_renames_and_reslugs(async_client: AsyncClient, audit_sink: InMemoryAuditSink) -> None:
    resp = await async_client.post(TYPES_URL, json={"name": "Jury Duty", "days_allowed": 5}, headers=ADMIN_HEADERS)
    type_id = resp.json()["id"]

    resp = await async_client.patch(
        f"{TYPES_URL}/{type_id}",
        json={"name": "Civic Duty", "days_allowed": None},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["slug"] == "civic-duty"
    assert data["days_allowed"] is None
    assert data["is_unlimited"] is True

    updated = [e for e in audit_sink.for_entity(uuid.UUID(type_id)) if e.action == "LEAVE_TYPE_UPDATED"]
    assert updated[0].metadata["before"]["slug"] == "jury-duty"
    assert updated[0].metadata["after"]["slug"] == "civic-duty"


async def test_update_to_taken_name_conflicts(async_client: AsyncClient) -> None:
    await async_client.post(TYPES_URL, json={"name": "Bereavement"}, headers=ADMIN_HEADERS)
    resp = await async_client.post(TYPES_URL, json={"name": "Volunteer"}, headers=ADMIN_HEADERS)
    resp = await async_client.patch(
        f"{TYPES_URL}/{resp.json()['id']}", json={"name": "Bereavement"}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 409


async def test_get_unknown_type_404(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"{TYPES_URL}/{uuid.uuid4()}", headers=ADMIN_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["error"] == "UnknownLeaveTypeError"


# ---------------------------------------------------------------------------
# Soft delete
# ---------------------------------------------------------------------------


async def test_delete_unused_type(async_client: AsyncClient, db_session: AsyncSession) -> None:
    resp = await async_client.post(TYPES_URL, json={"name": "Moving Day"}, headers=ADMIN_HEADERS)
    type_id = resp.json()["id"]

    resp = await async_client.delete(f"{TYPES_URL}/{type_id}", headers=ADMIN_HEADERS)
    assert resp.status_code == 204

    resp = await async_client.get(f"{TYPES_URL}/{type_id}", headers=ADMIN_HEADERS)
    assert resp.status_code == 404

    row = await db_session.get(LeaveType, uuid.UUID(type_id))
    assert row is not None
    assert row.deleted_at is not None


async def test_deleted_name_can_be_reused(async_client: AsyncClient) -> None:
    resp = await async_client.post(TYPES_URL, json={"name": "Wellness"}, headers=ADMIN_HEADERS)
    await async_client.delete(f"{TYPES_URL}/{resp.json()['id']}", headers=ADMIN_HEADERS)
    resp = await async_client.post(TYPES_URL, json={"name": "Wellness"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 201
