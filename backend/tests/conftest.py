from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from leave_ledger.config import get_settings
from leave_ledger.db import get_session
from leave_ledger.main import app
from leave_ledger.models import SQLModel
from leave_ledger.services.audit import InMemoryAuditSink, LoggingAuditSink, set_audit_sink
from leave_ledger.services.employee import InMemoryEmployeeService, set_employee_service
from leave_ledger.services.notification import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
    set_notification_sink,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture(scope="session")
async def engine() -> AsyncIterator[AsyncEngine]:
    """Create a session-scoped async engine and ensure tables exist.

    In CI, Alembic migrations run before tests so create_all is a no-op.
    Tests that need the database are skipped when PostgreSQL is unreachable.
    """
    settings = get_settings()
    _engine = create_async_engine(settings.database_url)
    try:
        async with _engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
    except (OSError, ConnectionError) as exc:
        await _engine.dispose()
        pytest.skip(f"PostgreSQL not reachable at {settings.database_url}: {exc}")
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session wrapped in a transaction that rolls back after each test."""
    async with engine.connect() as conn:
        txn = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)
        yield session
        await session.close()
        await txn.rollback()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def directory() -> Iterator[InMemoryEmployeeService]:
    """A fresh employee directory installed for the test."""
    svc = InMemoryEmployeeService()
    set_employee_service(svc)
    yield svc
    set_employee_service(InMemoryEmployeeService())


@pytest.fixture
def audit_sink() -> Iterator[InMemoryAuditSink]:
    sink = InMemoryAuditSink()
    set_audit_sink(sink)
    yield sink
    set_audit_sink(LoggingAuditSink())


@pytest.fixture
def notification_sink() -> Iterator[InMemoryNotificationSink]:
    sink = InMemoryNotificationSink()
    set_notification_sink(sink)
    yield sink
    set_notification_sink(LoggingNotificationSink())
