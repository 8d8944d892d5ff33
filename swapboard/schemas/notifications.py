"""Schemas for notifications."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient_id: UUID
    sender_id: UUID | None = None
    type: str
    content: str
    post_id: int | None = None
    read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]


class NotificationSummaryResponse(BaseModel):
    unread_count: int = 0


class NotificationMarkReadRequest(BaseModel):
    """Mark the listed notifications read, or every notification when ``ids`` is empty."""

    ids: list[int] = Field(default_factory=list)


__all__ = [
    "NotificationResponse",
    "NotificationListResponse",
    "NotificationSummaryResponse",
    "NotificationMarkReadRequest",
]
