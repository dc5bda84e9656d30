from __future__ import annotations

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def _uuid_factory() -> uuid.UUID:
    """Generate a new UUID v4."""
    return uuid.uuid4()


def now_utc() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


class UUIDBase(SQLModel):
    """Base model with UUID primary key."""

    id: uuid.UUID = Field(
        default_factory=_uuid_factory,
        primary_key=True,
        sa_type=sa.Uuid,
    )


class TimestampMixin(SQLModel):
    """Mixin that adds a created_at timestamp."""

    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class UpdatedAtMixin(SQLModel):
    """Mixin for rows the ledger rewrites in place; the database bumps ``updated_at``."""

    updated_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )


class SoftDeleteMixin(SQLModel):
    """Mixin for catalog rows that are hidden rather than removed.

    Unique indexes on such tables are partial on ``deleted_at IS NULL`` so a
    deleted name can be reused.
    """

    deleted_at: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
