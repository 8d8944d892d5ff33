"""Member profile pages and the local anonymous profile."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from ..backend.client import BackendClient
from ..backend.filters import eq
from ..constants import POSTS, PROFILES, ContentType
from ..errors import NotFoundError
from ..schemas.profiles import ProfileUpdateRequest
from .feed_service import sort_posts
from .identity import AnonymousIdentityResolver


def get_profile(backend: BackendClient, user_id: UUID) -> dict[str, Any]:
    profile = backend.get(PROFILES, user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


def get_public_profile(backend: BackendClient, username: str) -> dict[str, Any]:
    """Profile plus the member's item and service listings, newest first."""

    rows = backend.select(PROFILES, eq("username", username), limit=1)
    if not rows:
        raise NotFoundError("Profile not found")
    profile = rows[0]
    posts = sort_posts(backend.select(POSTS, eq("user_id", profile["id"])))
    return {
        "profile": profile,
        "item_posts": [post for post in posts if post.get("content_type") == ContentType.ITEM],
        "service_posts": [post for post in posts if post.get("content_type") == ContentType.SERVICE],
    }


def update_profile(backend: BackendClient, user_id: UUID, changes: ProfileUpdateRequest) -> dict[str, Any]:
    profile = get_profile(backend, user_id)
    patch = {
        key: (value.strip() or None) if isinstance(value, str) else value
        for key, value in changes.model_dump(exclude_unset=True, exclude={"display_name"}).items()
    }
    if not patch:
        return profile
    return backend.update(PROFILES, patch, eq("id", user_id))[0]


def anonymous_profile_view(resolver: AnonymousIdentityResolver) -> dict[str, Any]:
    profile = resolver.get_profile()
    return {
        "anonymous_id": profile.anonymous_id,
        "display_name": resolver.display_name(),
        "has_custom_name": bool(profile.display_name),
    }


def rename_anonymous_profile(resolver: AnonymousIdentityResolver, display_name: str) -> dict[str, Any]:
    resolver.set_display_name(display_name)
    return anonymous_profile_view(resolver)


__all__ = [
    "get_profile",
    "get_public_profile",
    "update_profile",
    "anonymous_profile_view",
    "rename_anonymous_profile",
]
