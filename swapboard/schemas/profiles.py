"""Schemas for profile endpoints."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .posts import PostResponse


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str | None = None
    full_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    created_at: datetime


class PublicProfile(BaseModel):
    """What any visitor may see of a member; contact details stay on the listings."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    full_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    created_at: datetime


class ProfileUpdateRequest(BaseModel):
    """Members may change every field; anonymous viewers only ``display_name``."""

    full_name: str | None = Field(default=None, max_length=150)
    bio: str | None = Field(default=None, max_length=500)
    avatar_url: str | None = Field(default=None, max_length=1024)
    display_name: str | None = Field(default=None, min_length=1, max_length=150)

    @field_validator("avatar_url", mode="before")
    def clean_avatar_url(cls, v):
        if v in ("", "None"):
            return None
        return v


class PublicProfileResponse(BaseModel):
    profile: PublicProfile
    item_posts: list[PostResponse]
    service_posts: list[PostResponse]


class AnonymousProfileResponse(BaseModel):
    anonymous_id: str
    display_name: str
    has_custom_name: bool = False


class AnonymousProfileUpdate(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=150)


class ViewerProfileResponse(BaseModel):
    """``profile`` is set for signed-in viewers, ``anonymous`` otherwise."""

    profile: ProfileResponse | None = None
    anonymous: AnonymousProfileResponse | None = None


__all__ = [
    "ProfileResponse",
    "PublicProfile",
    "ProfileUpdateRequest",
    "PublicProfileResponse",
    "AnonymousProfileResponse",
    "AnonymousProfileUpdate",
    "ViewerProfileResponse",
]
