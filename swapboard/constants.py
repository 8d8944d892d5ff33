"""Shared catalogue values for listings."""
from __future__ import annotations

from enum import StrEnum
from typing import Final


class OfferType(StrEnum):
    OFFERING = "offering"
    REQUESTING = "requesting"


class ContentType(StrEnum):
    ITEM = "item"
    SERVICE = "service"


class RateType(StrEnum):
    TRADE = "trade"
    HOURLY = "hourly"
    FIXED = "fixed"


class SortOrder(StrEnum):
    NEWEST = "newest"
    POPULAR = "popular"


ITEM_CATEGORIES: Final[tuple[str, ...]] = (
    "Books & Media",
    "Clothing",
    "Electronics",
    "Furniture",
    "Garden",
    "Home Goods",
    "Kids & Toys",
    "Music",
    "Outdoors",
    "Pet Supplies",
    "Sports",
    "Tools",
    "Other",
)

SERVICE_CATEGORIES: Final[tuple[str, ...]] = (
    "Education & Tutoring",
    "Home Repair",
    "Computer & Tech Support",
    "Creative & Design",
    "Health & Wellness",
    "Events & Entertainment",
    "Professional Services",
    "Crafts & Handmade",
    "Transportation",
    "Cleaning & Organization",
    "Pet Care",
    "Yard & Garden Work",
    "Other",
)

CONDITIONS: Final[tuple[str, ...]] = ("New", "Like New", "Good", "Fair", "Poor")
DEFAULT_CONDITION: Final[str] = "Good"

EXPERIENCE_LEVELS: Final[tuple[str, ...]] = ("Beginner", "Intermediate", "Advanced", "Expert")
DEFAULT_EXPERIENCE_LEVEL: Final[str] = "Intermediate"

CONTACT_METHODS: Final[tuple[str, ...]] = ("email", "phone", "message")

ANONYMOUS_DISPLAY_NAME: Final[str] = "Anonymous"
UNKNOWN_PARTICIPANT_NAME: Final[str] = "User"

# Table names as exposed by the backend client.
POSTS: Final[str] = "Posts"
POST_IMAGES: Final[str] = "PostImages"
COMMENTS: Final[str] = "Comments"
CONVERSATIONS: Final[str] = "Conversations"
MESSAGES: Final[str] = "Messages"
USER_NOTIFICATIONS: Final[str] = "UserNotifications"
PROFILES: Final[str] = "profiles"


__all__ = [
    "OfferType",
    "ContentType",
    "RateType",
    "SortOrder",
    "ITEM_CATEGORIES",
    "SERVICE_CATEGORIES",
    "CONDITIONS",
    "DEFAULT_CONDITION",
    "EXPERIENCE_LEVELS",
    "DEFAULT_EXPERIENCE_LEVEL",
    "CONTACT_METHODS",
    "ANONYMOUS_DISPLAY_NAME",
    "UNKNOWN_PARTICIPANT_NAME",
    "POSTS",
    "POST_IMAGES",
    "COMMENTS",
    "CONVERSATIONS",
    "MESSAGES",
    "USER_NOTIFICATIONS",
    "PROFILES",
]
