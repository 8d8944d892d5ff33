"""Pydantic schemas for listing comments."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    content: str
    user_id: UUID | None = None
    user_name: str | None = None
    created_at: datetime
    is_own: bool = False


class CommentListResponse(BaseModel):
    items: list[CommentResponse]


__all__ = ["CommentCreate", "CommentResponse", "CommentListResponse"]
