"""Listing composer: validation, row mapping, submission and drafts."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..backend.client import BackendClient
from ..config import get_settings
from ..constants import DEFAULT_EXPERIENCE_LEVEL, POSTS, ContentType, OfferType, RateType
from ..errors import ListingValidationError
from ..local_state import AppStorage
from ..schemas.local import LocalPostRef
from ..schemas.posts import ListingDraft
from ..viewer import Identity
from .image_service import ImageUpload, UploadFailure, attach_images, upload_images

logger = logging.getLogger(__name__)


@dataclass
class ListingSubmission:
    post: dict[str, Any]
    images: list[dict[str, Any]] = field(default_factory=list)
    failed_uploads: list[UploadFailure] = field(default_factory=list)


def _blank(value: str | None) -> bool:
    return not (value or "").strip()


def validate_listing(draft: ListingDraft, *, image_count: int = 0, max_images: int | None = None) -> dict[str, str]:
    """Return a field -> message map of everything blocking submission (empty when valid)."""

    errors: dict[str, str] = {}
    if _blank(draft.title):
        errors["title"] = "Title is required"
    if _blank(draft.description):
        errors["description"] = "Description is required"
    if _blank(draft.contact_info):
        errors["contact_info"] = "Contact information is required"

    if draft.content_type == ContentType.ITEM:
        if _blank(draft.item_category):
            errors["item_category"] = "Category is required"
        if draft.offer_type == OfferType.OFFERING and _blank(draft.condition):
            errors["condition"] = "Condition is required"
    else:
        if _blank(draft.service_category):
            errors["service_category"] = "Service category is required"
        if _blank(draft.availability):
            errors["availability"] = "Availability is required"
        if draft.rate_type != RateType.TRADE and _blank(draft.rate_amount):
            errors["rate_amount"] = "Rate amount is required"

    limit = max_images if max_images is not None else get_settings().max_post_images
    if image_count > limit:
        errors["images"] = f"You can upload at most {limit} images"
    return errors


def _optional(value: str | None) -> str | None:
    text = (value or "").strip()
    return text or None


def build_post_row(draft: ListingDraft, owner: Identity) -> dict[str, Any]:
    """Map the composer fields onto ``Posts`` columns for ``owner``."""

    row: dict[str, Any] = {
        "offer_type": str(draft.offer_type),
        "content_type": str(draft.content_type),
        "title": draft.title.strip(),
        "description": draft.description.strip(),
        "contact_method": draft.contact_method,
        "contact_info": draft.contact_info.strip(),
        "is_anonymous": not owner.is_authenticated,
        "likes": 0,
        "comments": 0,
        **owner.owner_columns(),
    }
    offering = draft.offer_type == OfferType.OFFERING
    if draft.content_type == ContentType.ITEM:
        row.update(
            category=draft.item_category,
            condition=_optional(draft.condition) if offering else None,
            looking_for=_optional(draft.looking_for) if offering else None,
            can_offer=None if offering else _optional(draft.can_offer),
        )
    else:
        trade = draft.rate_type == RateType.TRADE
        row.update(
            category=draft.service_category,
            experience_level=draft.experience_level,
            availability=draft.availability.strip(),
            rate_type=str(draft.rate_type),
            rate_amount=None if trade else _optional(draft.rate_amount),
            rate_notes=_optional(draft.rate_notes),
        )
    return row


def draft_from_post(post: dict[str, Any]) -> ListingDraft:
    """Rebuild composer fields from a stored post, used to re-validate edits."""

    is_item = post.get("content_type") == ContentType.ITEM
    return ListingDraft(
        offer_type=post.get("offer_type") or OfferType.OFFERING,
        content_type=post.get("content_type") or ContentType.ITEM,
        title=post.get("title") or "",
        description=post.get("description") or "",
        contact_method=post.get("contact_method") or "email",
        contact_info=post.get("contact_info") or "",
        item_category=(post.get("category") or "") if is_item else "",
        condition=post.get("condition"),
        looking_for=post.get("looking_for") or "",
        can_offer=post.get("can_offer") or "",
        service_category="" if is_item else (post.get("category") or ""),
        experience_level=post.get("experience_level") or DEFAULT_EXPERIENCE_LEVEL,
        availability=post.get("availability") or "",
        rate_type=post.get("rate_type") or RateType.TRADE,
        rate_amount=post.get("rate_amount"),
        rate_notes=post.get("rate_notes") or "",
    )


async def submit_listing(
    backend: BackendClient,
    storage: AppStorage,
    draft: ListingDraft,
    owner: Identity,
    images: Sequence[ImageUpload] = (),
) -> ListingSubmission:
    """Validate, upload images, then create the post followed by its PostImages.

    Nothing is written when validation fails. Individual upload failures are
    reported back and do not stop the listing from being created. Steps are
    not rolled back if a later one fails.
    """

    errors = validate_listing(draft, image_count=len(images))
    if errors:
        raise ListingValidationError(errors)

    uploaded, failures = await upload_images(backend, images)

    row = build_post_row(draft, owner)
    row["image_url"] = uploaded[0].url if uploaded else None
    post = backend.insert(POSTS, row)[0]
    image_rows = attach_images(backend, post["id"], uploaded)

    if not owner.is_authenticated:
        storage.add_user_post(
            LocalPostRef(
                id=post["id"],
                anonymous_id=owner.anonymous_id,
                title=post["title"],
                created_at=post.get("created_at"),
            )
        )
    storage.clear_draft_post()
    logger.info("Created post %s with %d images (%d failed)", post["id"], len(image_rows), len(failures))
    return ListingSubmission(post=post, images=image_rows, failed_uploads=failures)


def save_draft(storage: AppStorage, draft: ListingDraft) -> None:
    storage.save_draft_post(draft)


def restore_draft(storage: AppStorage) -> ListingDraft:
    """The saved draft, or a blank one seeded from the viewer's preferences."""

    draft = storage.get_draft_post()
    if draft is not None:
        return draft
    preferences = storage.get_user_preferences()
    return ListingDraft(item_category=preferences.default_category)


__all__ = [
    "ListingSubmission",
    "validate_listing",
    "build_post_row",
    "draft_from_post",
    "submit_listing",
    "save_draft",
    "restore_draft",
]
