"""Listing detail, owner-only editing and deletion, and the "my posts" view."""
from __future__ import annotations

import logging
from typing import Any, Sequence
from urllib.parse import quote

from ..backend.client import BackendClient
from ..backend.filters import eq, in_
from ..config import get_settings
from ..constants import COMMENTS, POSTS, PROFILES
from ..errors import ListingValidationError, NotFoundError, OwnershipError
from ..local_state import AppStorage
from ..schemas.local import EditIntent
from ..schemas.posts import ListingUpdate
from ..viewer import Identity
from . import image_service
from .comment_service import comment_view, list_comments
from .composer import build_post_row, draft_from_post, validate_listing
from .feed_service import sort_posts
from .image_service import ImageSet, ImageUpload, UploadFailure

logger = logging.getLogger(__name__)

TYPE_COLUMNS = (
    "category",
    "condition",
    "looking_for",
    "can_offer",
    "experience_level",
    "availability",
    "rate_type",
    "rate_amount",
    "rate_notes",
)


def get_post(backend: BackendClient, post_id: int) -> dict[str, Any]:
    post = backend.get(POSTS, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    return post


def is_owner(post: dict[str, Any], viewer: Identity) -> bool:
    return viewer.owns(post)


def owner_view(post: dict[str, Any], viewer: Identity | None) -> dict[str, Any]:
    """``post`` plus an ``is_owner`` flag for ``viewer``."""

    return {**post, "is_owner": bool(viewer and viewer.owns(post))}


def require_owned_post(backend: BackendClient, post_id: int, viewer: Identity) -> dict[str, Any]:
    post = get_post(backend, post_id)
    if not viewer.owns(post):
        raise OwnershipError("You can only change your own posts")
    return post


def share_links(post: dict[str, Any]) -> dict[str, str]:
    settings = get_settings()
    url = f"{settings.public_base_url.rstrip('/')}/post/{post['id']}"
    subject = f"Check out this listing: {post['title']}"
    body = f"I found this listing on {settings.app_name}:\n\n{post['title']}\n{url}"
    return {
        "url": url,
        "mailto_subject": subject,
        "mailto_body": body,
        "mailto": f"mailto:?subject={quote(subject)}&body={quote(body)}",
    }


def get_post_detail(backend: BackendClient, post_id: int, viewer: Identity | None = None) -> dict[str, Any]:
    post = get_post(backend, post_id)
    owner = None
    if post.get("user_id") is not None:
        profile = backend.get(PROFILES, post["user_id"])
        if profile is not None:
            owner = {
                "id": profile["id"],
                "username": profile["username"],
                "full_name": profile.get("full_name"),
                "avatar_url": profile.get("avatar_url"),
            }
    return {
        "post": owner_view(post, viewer),
        "images": image_service.list_post_images(backend, post),
        "owner": owner,
        "comments": [comment_view(comment, viewer) for comment in list_comments(backend, post_id)],
        "share": share_links(post),
        "is_owner": bool(viewer and viewer.owns(post)),
    }


def begin_edit(backend: BackendClient, storage: AppStorage, post_id: int, viewer: Identity) -> EditIntent:
    """Remember which post the owner asked to edit, after checking ownership."""

    post = require_owned_post(backend, post_id, viewer)
    intent = EditIntent(
        id=post_id,
        anonymous_id=viewer.anonymous_id,
        user_id=str(viewer.user_id) if viewer.user_id else None,
        title=post["title"],
    )
    storage.set_edit_intent(intent)
    return intent


def _intent_matches(intent: EditIntent, post: dict[str, Any], viewer: Identity) -> bool:
    if intent.id != post["id"]:
        return False
    if viewer.user_id is not None:
        return intent.user_id == str(viewer.user_id) and str(post.get("user_id")) == intent.user_id
    return intent.anonymous_id == viewer.anonymous_id and post.get("anonymous_id") == intent.anonymous_id


def load_for_edit(backend: BackendClient, storage: AppStorage, post_id: int, viewer: Identity) -> dict[str, Any]:
    """Fetch the post for the editor, refusing when the stored edit intent or owner does not match."""

    post = get_post(backend, post_id)
    intent = storage.get_edit_intent()
    if intent is not None and intent.id == post_id:
        if not _intent_matches(intent, post, viewer):
            storage.clear_edit_intent()
            raise OwnershipError("You can only edit your own posts")
    elif not viewer.owns(post):
        raise OwnershipError("You can only edit your own posts")
    return post


def update_listing(
    backend: BackendClient,
    storage: AppStorage,
    post_id: int,
    viewer: Identity,
    changes: ListingUpdate,
) -> dict[str, Any]:
    post = require_owned_post(backend, post_id, viewer)
    patch = changes.model_dump(exclude_unset=True)
    if not patch:
        return post

    draft = draft_from_post({**post, **patch})
    errors = validate_listing(draft)
    if errors:
        raise ListingValidationError(errors)
    # Re-derive the type columns so fields of the other offer or content type are cleared.
    row = build_post_row(draft, viewer)
    patch.update({column: row.get(column) for column in TYPE_COLUMNS})

    updated = backend.update(POSTS, patch, eq("id", post_id), viewer.owner_filter())
    if not updated:
        raise OwnershipError("You can only change your own posts")
    if "title" in patch:
        storage.update_user_post(post_id, title=patch["title"])
    storage.clear_edit_intent()
    return updated[0]


def delete_listing(backend: BackendClient, storage: AppStorage, post_id: int, viewer: Identity) -> None:
    require_owned_post(backend, post_id, viewer)
    image_service.delete_post_images(backend, post_id)
    backend.delete(COMMENTS, eq("post_id", post_id))
    removed = backend.delete(POSTS, eq("id", post_id), viewer.owner_filter())
    if not removed:
        raise OwnershipError("You can only delete your own posts")
    storage.remove_user_post(post_id)
    intent = storage.get_edit_intent()
    if intent is not None and intent.id == post_id:
        storage.clear_edit_intent()
    logger.info("Deleted post %s", post_id)


def list_my_posts(backend: BackendClient, storage: AppStorage, viewer: Identity) -> list[dict[str, Any]]:
    """Posts owned by ``viewer`` plus any still tracked locally, newest first.

    Locally tracked ids whose post no longer exists are dropped from local state.
    """

    posts = {post["id"]: post for post in backend.select(POSTS, viewer.owner_filter())}
    tracked = [
        ref.id
        for ref in storage.get_user_posts()
        if ref.anonymous_id is None or ref.anonymous_id == viewer.anonymous_id
    ]
    missing = [post_id for post_id in tracked if post_id not in posts]
    if missing:
        found = backend.select(POSTS, in_("id", missing))
        for post in found:
            if viewer.owns(post):
                posts[post["id"]] = post
        found_ids = {post["id"] for post in found}
        for post_id in missing:
            if post_id not in found_ids:
                storage.remove_user_post(post_id)

    return sort_posts(posts.values())


async def add_listing_images(
    backend: BackendClient,
    post_id: int,
    viewer: Identity,
    images: Sequence[ImageUpload],
) -> tuple[ImageSet, list[UploadFailure]]:
    require_owned_post(backend, post_id, viewer)
    existing = image_service.load_image_set(backend, post_id)
    limit = get_settings().max_post_images
    if len(existing) + len(images) > limit:
        raise ListingValidationError({"images": f"A listing can have at most {limit} images"})

    uploaded, failures = await image_service.upload_images(backend, images)
    return image_service.add_images(backend, post_id, uploaded), failures


def remove_listing_image(backend: BackendClient, post_id: int, image_id: int, viewer: Identity) -> ImageSet:
    require_owned_post(backend, post_id, viewer)
    try:
        return image_service.remove_image(backend, post_id, image_id)
    except KeyError as exc:
        raise NotFoundError("Image not found") from exc


def reorder_listing_images(backend: BackendClient, post_id: int, image_ids: Sequence[int], viewer: Identity) -> ImageSet:
    require_owned_post(backend, post_id, viewer)
    try:
        return image_service.reorder_images(backend, post_id, image_ids)
    except ValueError as exc:
        raise ListingValidationError({"image_ids": str(exc)}) from exc


__all__ = [
    "get_post",
    "is_owner",
    "owner_view",
    "require_owned_post",
    "share_links",
    "get_post_detail",
    "begin_edit",
    "load_for_edit",
    "update_listing",
    "delete_listing",
    "list_my_posts",
    "add_listing_images",
    "remove_listing_image",
    "reorder_listing_images",
]
