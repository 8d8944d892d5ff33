"""Pydantic schemas for listings, their images and the composer form."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .comments import CommentResponse
from ..constants import DEFAULT_EXPERIENCE_LEVEL, ContentType, OfferType, RateType, SortOrder


class ListingDraft(BaseModel):
    """Everything the composer collects before a listing is submitted.

    Fields that do not apply to the chosen content type are ignored when the
    row is built, so a draft can be switched between item and service without
    losing what was typed.
    """

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    offer_type: OfferType = OfferType.OFFERING
    content_type: ContentType = ContentType.ITEM
    title: str = ""
    description: str = ""
    contact_method: str = "email"
    contact_info: str = ""

    # Item fields
    item_category: str = ""
    condition: str | None = None
    looking_for: str = ""
    can_offer: str = ""

    # Service fields
    service_category: str = ""
    experience_level: str = DEFAULT_EXPERIENCE_LEVEL
    availability: str = ""
    rate_type: RateType = RateType.TRADE
    rate_amount: str | None = None
    rate_notes: str = ""


class ListingUpdate(BaseModel):
    """Partial update sent from the edit page; unset fields are left untouched."""

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    offer_type: OfferType | None = None
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1)
    category: str | None = None
    condition: str | None = None
    looking_for: str | None = None
    can_offer: str | None = None
    experience_level: str | None = None
    availability: str | None = None
    rate_type: RateType | None = None
    rate_amount: str | None = None
    rate_notes: str | None = None
    contact_method: str | None = None
    contact_info: str | None = Field(default=None, min_length=1)


class PostResponse(BaseModel):
    """Serialized representation of a persisted listing."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    offer_type: str
    content_type: str
    title: str
    description: str
    category: str | None = None
    condition: str | None = None
    looking_for: str | None = None
    can_offer: str | None = None
    experience_level: str | None = None
    availability: str | None = None
    rate_type: str | None = None
    rate_amount: str | None = None
    rate_notes: str | None = None
    contact_method: str
    contact_info: str
    is_anonymous: bool = True
    user_id: UUID | None = None
    image_url: str | None = None
    likes: int = 0
    comments: int = 0
    created_at: datetime
    is_owner: bool = False


class PostImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    image_url: str
    order: int


class UploadFailureResponse(BaseModel):
    filename: str
    reason: str


class FeedQuery(BaseModel):
    offer_type: OfferType | None = None
    search: str = ""
    category: str = ""
    content_type: ContentType | None = None
    sort: SortOrder = SortOrder.NEWEST


class PostFeedResponse(BaseModel):
    """Envelope used when returning a collection of listings."""

    items: list[PostResponse]


class ListingSubmitResponse(BaseModel):
    post: PostResponse
    images: list[PostImageResponse] = Field(default_factory=list)
    failed_uploads: list[UploadFailureResponse] = Field(default_factory=list)


class OwnerSummary(BaseModel):
    id: UUID
    username: str
    full_name: str | None = None
    avatar_url: str | None = None


class ShareLinks(BaseModel):
    url: str
    mailto_subject: str
    mailto_body: str
    mailto: str


class PostDetailResponse(BaseModel):
    post: PostResponse
    images: list[str]
    owner: OwnerSummary | None = None
    comments: list[CommentResponse] = Field(default_factory=list)
    share: ShareLinks
    is_owner: bool = False


class ImageOrderRequest(BaseModel):
    image_ids: list[int] = Field(..., min_length=1)


class ImageSetResponse(BaseModel):
    post_id: int
    image_url: str | None = None
    images: list[PostImageResponse]
    failed_uploads: list[UploadFailureResponse] = Field(default_factory=list)


class HomeResponse(BaseModel):
    latest: list[PostResponse]
    offering_count: int
    requesting_count: int


__all__ = [
    "ListingDraft",
    "ListingUpdate",
    "PostResponse",
    "PostImageResponse",
    "UploadFailureResponse",
    "FeedQuery",
    "PostFeedResponse",
    "ListingSubmitResponse",
    "OwnerSummary",
    "ShareLinks",
    "PostDetailResponse",
    "ImageOrderRequest",
    "ImageSetResponse",
    "HomeResponse",
]
