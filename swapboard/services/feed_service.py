"""Community feed: fetch every listing, then filter and sort in memory."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from ..backend.client import BackendClient
from ..backend.filters import eq
from ..backend.realtime import LiveList, RealtimeEvent, Subscription
from ..constants import POSTS, OfferType, SortOrder
from ..schemas.posts import FeedQuery

Post = dict[str, Any]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _created_at(post: Post) -> datetime:
    value = post.get("created_at")
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return _EPOCH
    if not isinstance(value, datetime):
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def popularity(post: Post) -> int:
    return int(post.get("likes") or 0) + int(post.get("comments") or 0)


def matches_filters(post: Post, query: FeedQuery) -> bool:
    if query.offer_type and post.get("offer_type") != query.offer_type:
        return False
    if query.content_type and post.get("content_type") != query.content_type:
        return False
    if query.category and post.get("category") != query.category:
        return False
    needle = query.search.strip().lower()
    if needle:
        haystacks = (str(post.get("title") or ""), str(post.get("description") or ""))
        if not any(needle in text.lower() for text in haystacks):
            return False
    return True


def filter_posts(posts: Iterable[Post], query: FeedQuery) -> list[Post]:
    """Keep the posts that satisfy every active filter; order is preserved."""

    return [post for post in posts if matches_filters(post, query)]


def sort_posts(posts: Iterable[Post], order: SortOrder | str = SortOrder.NEWEST) -> list[Post]:
    """Sort newest first, or by likes + comments; ties keep their incoming order."""

    if SortOrder(order) is SortOrder.POPULAR:
        return sorted(posts, key=popularity, reverse=True)
    return sorted(posts, key=_created_at, reverse=True)


def apply_feed_query(posts: Iterable[Post], query: FeedQuery) -> list[Post]:
    return sort_posts(filter_posts(posts, query), query.sort)


def fetch_all_posts(backend: BackendClient) -> list[Post]:
    return backend.select(POSTS, order="created_at", desc=True)


def fetch_feed(backend: BackendClient, query: FeedQuery) -> list[Post]:
    return apply_feed_query(fetch_all_posts(backend), query)


def home_summary(backend: BackendClient, *, latest: int = 6) -> dict[str, Any]:
    return {
        "latest": backend.select(POSTS, order="created_at", desc=True, limit=latest),
        "offering_count": backend.count(POSTS, eq("offer_type", OfferType.OFFERING.value)),
        "requesting_count": backend.count(POSTS, eq("offer_type", OfferType.REQUESTING.value)),
    }


class LiveFeed:
    """Feed contents kept current by new-listing events."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend
        self._posts = LiveList(prepend=True)
        self._subscription: Subscription | None = None

    def open(self) -> list[Post]:
        self._posts = LiveList(fetch_all_posts(self._backend), prepend=True)
        if self._subscription is None:
            self._subscription = self._backend.subscribe(POSTS, "*", None, self._on_event)
        return self._posts.items

    def _on_event(self, event: RealtimeEvent) -> None:
        self._posts.apply(event)

    def view(self, query: FeedQuery | None = None) -> list[Post]:
        return apply_feed_query(self._posts.items, query or FeedQuery())

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None


__all__ = [
    "popularity",
    "matches_filters",
    "filter_posts",
    "sort_posts",
    "apply_feed_query",
    "fetch_all_posts",
    "fetch_feed",
    "home_summary",
    "LiveFeed",
]
