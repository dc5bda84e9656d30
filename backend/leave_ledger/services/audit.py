from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlmodel import SQLModel

    from leave_ledger.models.enums import AuditAction, AuditEntityType

logger = logging.getLogger(__name__)


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Serialize a SQLModel instance to a JSON-safe dict for audit metadata."""
    data: dict[str, Any] = {}
    for key, value in model.model_dump().items():
        if isinstance(value, uuid.UUID):
            data[key] = str(value)
        elif isinstance(value, (datetime, date)):
            data[key] = value.isoformat()
        elif isinstance(value, Decimal):
            data[key] = str(value)
        else:
            data[key] = value
    return data


@runtime_checkable
class AuditSink(Protocol):
    """External audit collaborator. Storage format is the sink's concern."""

    async def record(
        self,
        company_id: uuid.UUID,
        actor_id: uuid.UUID,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        metadata: dict[str, Any],
    ) -> None: ...


class LoggingAuditSink:
    """Default sink: writes each entry to the application log."""

    async def record(
        self,
        company_id: uuid.UUID,
        actor_id: uuid.UUID,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        metadata: dict[str, Any],
    ) -> None:
        logger.info(
            "audit company=%s actor=%s action=%s entity=%s:%s metadata=%s",
            company_id,
            actor_id,
            action,
            entity_type,
            entity_id,
            metadata,
        )


@dataclass(frozen=True)
class AuditEntry:
    company_id: uuid.UUID
    actor_id: uuid.UUID
    action: str
    entity_type: str
    entity_id: uuid.UUID
    metadata: dict[str, Any] = field(default_factory=dict)


class InMemoryAuditSink:
    """In-memory sink for tests."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def record(
        self,
        company_id: uuid.UUID,
        actor_id: uuid.UUID,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        metadata: dict[str, Any],
    ) -> None:
        self.entries.append(AuditEntry(company_id, actor_id, action, entity_type, entity_id, metadata))

    def for_entity(self, entity_id: uuid.UUID) -> list[AuditEntry]:
        return [e for e in self.entries if e.entity_id == entity_id]


_audit_sink: AuditSink = LoggingAuditSink()


def get_audit_sink() -> AuditSink:
    return _audit_sink


def set_audit_sink(sink: AuditSink) -> None:
    """Override the sink (for testing or production wiring)."""
    global _audit_sink
    _audit_sink = sink


async def record_audit(
    *,
    company_id: uuid.UUID,
    actor_id: uuid.UUID,
    action: AuditAction,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Fire-and-forget audit write. Failures are logged, never raised.

    Call only after the owning transaction has committed.
    """
    try:
        await get_audit_sink().record(
            company_id=company_id,
            actor_id=actor_id,
            action=action.value,
            entity_type=entity_type.value,
            entity_id=entity_id,
            metadata=metadata or {},
        )
    except Exception:
        logger.exception("Failed to record audit %s for %s %s", action.value, entity_type.value, entity_id)
