"""Schemas used by messaging endpoints."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MessageSendRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    sender_id: UUID | None = None
    sender_name: str | None = None
    content: str
    read: bool
    created_at: datetime
    is_own: bool = False


class ConversationSummary(BaseModel):
    id: int
    other_party_name: str
    other_party_known: bool = True
    post_id: int | None = None
    post_title: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0


class ConversationListResponse(BaseModel):
    items: list[ConversationSummary]


class ConversationThreadResponse(BaseModel):
    conversation: ConversationSummary
    messages: list[MessageResponse]


class InterestResponse(BaseModel):
    conversation_id: int
    created_conversation: bool
    notified_owner: bool


__all__ = [
    "MessageSendRequest",
    "MessageResponse",
    "ConversationSummary",
    "ConversationListResponse",
    "ConversationThreadResponse",
    "InterestResponse",
]
