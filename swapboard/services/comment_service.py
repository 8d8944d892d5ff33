"""Comments on listings."""
from __future__ import annotations

import logging
from typing import Any

from ..backend.client import BackendClient
from ..backend.filters import eq
from ..backend.realtime import LiveList, RealtimeEvent, ScopedSubscription
from ..constants import COMMENTS, POSTS
from ..errors import InputValidationError, NotFoundError
from ..viewer import Identity
from .notification_service import NotificationType, notify_safely

logger = logging.getLogger(__name__)


def list_comments(backend: BackendClient, post_id: int) -> list[dict[str, Any]]:
    return backend.select(COMMENTS, eq("post_id", post_id), order="created_at", desc=True)


def comment_view(comment: dict[str, Any], viewer: Identity | None) -> dict[str, Any]:
    return {**comment, "is_own": bool(viewer and viewer.owns(comment))}


def add_comment(backend: BackendClient, post_id: int, author: Identity, content: str) -> dict[str, Any]:
    """Store a comment, bump the post's counter and alert a signed-in owner."""

    text = (content or "").strip()
    if not text:
        raise InputValidationError({"content": "Comment cannot be empty"})

    post = backend.get(POSTS, post_id)
    if post is None:
        raise NotFoundError("Post not found")

    comment = backend.insert(
        COMMENTS,
        {
            "post_id": post_id,
            "content": text,
            "user_id": author.user_id,
            "anonymous_id": author.anonymous_id,
            "user_name": author.label,
        },
    )[0]
    backend.update(POSTS, {"comments": int(post.get("comments") or 0) + 1}, eq("id", post_id))

    owner_id = post.get("user_id")
    if owner_id is not None and owner_id != author.user_id:
        notify_safely(
            backend,
            recipient_id=owner_id,
            type_=NotificationType.COMMENT,
            content=f'New comment on your listing: "{post["title"]}"',
            sender=author,
            post_id=post_id,
        )
    return comment


class CommentThread:
    """Comments of the post being viewed, newest first, kept live while open."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend
        self.comments = LiveList(prepend=True)
        self._scope = ScopedSubscription(backend.hub, COMMENTS, "post_id", self._on_insert)

    @property
    def post_id(self) -> int | None:
        return self._scope.scope_key

    def open(self, post_id: int) -> list[dict[str, Any]]:
        self.comments = LiveList(list_comments(self._backend, post_id), prepend=True)
        self._scope.enter(post_id)
        return self.comments.items

    def _on_insert(self, event: RealtimeEvent) -> None:
        if event.new is not None:
            self.comments.upsert(event.new)

    def post(self, author: Identity, content: str) -> dict[str, Any]:
        if self.post_id is None:
            raise RuntimeError("Open a post before commenting")
        comment = add_comment(self._backend, self.post_id, author, content)
        # The realtime echo of this insert lands on the same id.
        self.comments.upsert(comment)
        return comment

    def close(self) -> None:
        self._scope.exit()


__all__ = ["list_comments", "comment_view", "add_comment", "CommentThread"]
