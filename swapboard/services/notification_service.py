"""Member notifications: interest, comment and message alerts."""
from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any, Sequence
from uuid import UUID

from ..backend.client import BackendClient
from ..backend.filters import eq, in_, is_
from ..backend.realtime import LiveList, RealtimeEvent, ScopedSubscription
from ..constants import USER_NOTIFICATIONS
from ..errors import BackendError
from ..viewer import Identity

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


class NotificationType(StrEnum):
    INTEREST = "interest"
    COMMENT = "comment"
    MESSAGE = "message"


def list_notifications(backend: BackendClient, recipient_id: UUID, *, limit: int = DEFAULT_LIMIT) -> list[dict[str, Any]]:
    """Return the newest notifications for ``recipient_id``."""

    return backend.select(USER_NOTIFICATIONS, eq("recipient_id", recipient_id), order="created_at", desc=True, limit=limit)


def count_unread_notifications(backend: BackendClient, recipient_id: UUID) -> int:
    return backend.count(USER_NOTIFICATIONS, eq("recipient_id", recipient_id), is_("read", False))


def add_notification(
    backend: BackendClient,
    *,
    recipient_id: UUID,
    type_: NotificationType | str,
    content: str,
    sender: Identity | None = None,
    post_id: int | None = None,
) -> dict[str, Any]:
    row = {
        "recipient_id": recipient_id,
        "sender_id": sender.user_id if sender else None,
        "sender_anonymous_id": sender.anonymous_id if sender else None,
        "type": str(type_),
        "content": content,
        "post_id": post_id,
        "read": False,
    }
    return backend.insert(USER_NOTIFICATIONS, row)[0]


def notify_safely(backend: BackendClient, **kwargs: Any) -> bool:
    """Best-effort :func:`add_notification`; a failure is logged and reported as ``False``."""

    try:
        add_notification(backend, **kwargs)
    except BackendError:
        logger.warning("Failed to deliver %s notification to %s", kwargs.get("type_"), kwargs.get("recipient_id"))
        return False
    return True


def mark_all_read(backend: BackendClient, recipient_id: UUID) -> int:
    updated = backend.update(USER_NOTIFICATIONS, {"read": True}, eq("recipient_id", recipient_id), is_("read", False))
    return len(updated)


def mark_read(backend: BackendClient, recipient_id: UUID, notification_ids: Sequence[int]) -> int:
    if not notification_ids:
        return 0
    updated = backend.update(
        USER_NOTIFICATIONS,
        {"read": True},
        eq("recipient_id", recipient_id),
        in_("id", notification_ids),
    )
    return len(updated)


class NotificationFeed:
    """Bell contents for one member, kept live by new notification events."""

    def __init__(self, backend: BackendClient, *, limit: int = DEFAULT_LIMIT) -> None:
        self._backend = backend
        self._limit = limit
        self.items = LiveList(prepend=True)
        self.unread_count = 0
        self._scope = ScopedSubscription(backend.hub, USER_NOTIFICATIONS, "recipient_id", self._on_insert)

    def open(self, recipient_id: UUID) -> list[dict[str, Any]]:
        self.items = LiveList(list_notifications(self._backend, recipient_id, limit=self._limit), prepend=True)
        self.unread_count = count_unread_notifications(self._backend, recipient_id)
        self._scope.enter(recipient_id)
        return self.items.items

    def _on_insert(self, event: RealtimeEvent) -> None:
        if event.new is None:
            return
        if self.items.upsert(event.new) and not event.new.get("read"):
            self.unread_count += 1

    def mark_all_read(self) -> None:
        if self._scope.scope_key is None:
            return
        mark_all_read(self._backend, self._scope.scope_key)
        for item in self.items.items:
            self.items.upsert({**item, "read": True})
        self.unread_count = 0

    def close(self) -> None:
        self._scope.exit()


__all__ = [
    "DEFAULT_LIMIT",
    "NotificationType",
    "list_notifications",
    "count_unread_notifications",
    "add_notification",
    "notify_safely",
    "mark_all_read",
    "mark_read",
    "NotificationFeed",
]
