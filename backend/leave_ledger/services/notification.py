# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from leave_ledger.models.enums import NotificationTemplate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    user_id: uuid.UUID
    template: NotificationTemplate
    payload: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class NotificationSink(Protocol):
    """External notification collaborator (email, push, in-app)."""

    async def notify(self, user_id: uuid.UUID, template: NotificationTemplate, payload: dict[str, Any]) -> None: ...


class LoggingNotificationSink:
    """Default sink: logs the notification instead of delivering it."""

    async def notify(self, user_id: uuid.UUID, template: NotificationTemplate, payload: dict[str, Any]) -> None:
        logger.info("notify user=%s template=%s payload=%s", user_id, template.value, payload)


class InMemoryNotificationSink:
    """In-memory sink for tests."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def notify(self, user_id: uuid.UUID, template: NotificationTemplate, payload: dict[str, Any]) -> None:
        self.sent.append(Notification(user_id=user_id, template=template, payload=payload))

    def for_user(self, user_id: uuid.UUID) -> list[Notification]:
        return [n for n in self.sent if n.user_id == user_id]


_notification_sink: NotificationSink = LoggingNotificationSink()


def get_notification_sink() -> NotificationSink:
    return _notification_sink


def set_notification_sink(sink: NotificationSink) -> None:
    """Override the sink (for testing or production wiring)."""
    global _notification_sink
    _notification_sink = sink


async def notify_users(
    user_ids: Iterable[uuid.UUID],
    template: NotificationTemplate,
    payload: dict[str, Any],
) -> None:
    """Best-effort fan-out. A failed delivery is logged and the rest continue."""
    sink = get_notification_sink()
    for user_id in user_ids:
        try:
            await sink.notify(user_id, template, payload)
        except Exception:
            logger.exception("Failed to send %s notification to %s", template.value, user_id)
