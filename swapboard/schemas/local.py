"""Records kept in device-local state rather than in the database."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _LocalRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_state(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class AnonymousProfile(_LocalRecord):
    anonymous_id: str = Field(..., alias="anonymousId")
    display_name: str | None = Field(default=None, alias="displayName")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class LocalPostRef(_LocalRecord):
    """A post created from this device, kept so it can be edited later."""

    id: int
    anonymous_id: str | None = Field(default=None, alias="anonymousId")
    title: str = ""
    created_at: datetime | None = Field(default=None, alias="createdAt")


class EditIntent(_LocalRecord):
    """Which post the owner asked to edit, and under which identity."""

    id: int
    anonymous_id: str | None = Field(default=None, alias="anonymousId")
    user_id: str | None = Field(default=None, alias="userId")
    title: str = ""


class UserPreferences(_LocalRecord):
    theme: str = "light"
    notifications: bool = True
    default_category: str = Field(default="", alias="defaultCategory")
    default_location: str = Field(default="", alias="defaultLocation")


class StorageInfo(BaseModel):
    type: str
    is_persistent: bool
    user_posts: int
    anonymous_id: str | None = None


__all__ = [
    "AnonymousProfile",
    "LocalPostRef",
    "EditIntent",
    "UserPreferences",
    "StorageInfo",
]
