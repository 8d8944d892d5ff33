"""Interest in listings and the two-party message threads that follow from it."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from ..backend.client import BackendClient
from ..backend.conversations import (
    MARK_READ_PATCH,
    ConversationRecord,
    MessageRecord,
    conversation_row,
    message_row,
    normalize_message,
    participant_filter,
    unread_count,
)
from ..backend.filters import eq, in_
from ..backend.realtime import LiveList, RealtimeEvent, ScopedSubscription
from ..constants import CONVERSATIONS, MESSAGES, POSTS, PROFILES
from ..errors import InputValidationError, MarketplaceError, NotFoundError, OwnershipError
from ..local_state import AppStorage
from ..models.base import utcnow
from ..viewer import Identity
from .identity import member_display_name
from .notification_service import NotificationType, notify_safely

logger = logging.getLogger(__name__)

INTEREST_NOTIFICATION = 'Someone is interested in your listing: "{title}"'
INITIAL_MESSAGE = 'Hi! I\'m interested in your listing "{title}".'
PREVIEW_LENGTH = 50


def message_preview(content: str) -> str:
    snippet = content[:PREVIEW_LENGTH]
    suffix = "..." if len(content) > PREVIEW_LENGTH else ""
    return f'New message: "{snippet}{suffix}"'


@dataclass(frozen=True)
class InterestResult:
    conversation: ConversationRecord
    created_conversation: bool
    notified_owner: bool


def _post_owner(backend: BackendClient, post: dict[str, Any]) -> Identity:
    if post.get("user_id") is not None:
        profile = backend.get(PROFILES, post["user_id"])
        name = member_display_name(profile) if profile else None
        return Identity.for_user(post["user_id"], display_name=name)
    if post.get("anonymous_id"):
        return Identity.for_anonymous(post["anonymous_id"])
    raise NotFoundError("This listing has no owner to contact")


def find_conversation(backend: BackendClient, viewer: Identity, other: Identity, post_id: int) -> ConversationRecord | None:
    for conversation in backend.conversations(participant_filter(viewer), eq("post_id", post_id)):
        if conversation.includes(other):
            return conversation
    return None


def express_interest(backend: BackendClient, storage: AppStorage, post_id: int, viewer: Identity) -> InterestResult:
    """Alert the owner, open (or reuse) a conversation and send the opening message.

    The steps run one after another; a failure part way through is not undone.
    """

    post = backend.get(POSTS, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    if viewer.owns(post):
        raise MarketplaceError("You can't express interest in your own listing")

    owner = _post_owner(backend, post)
    notified = False
    if owner.user_id is not None:
        notified = notify_safely(
            backend,
            recipient_id=owner.user_id,
            type_=NotificationType.INTEREST,
            content=INTEREST_NOTIFICATION.format(title=post["title"]),
            sender=viewer,
            post_id=post_id,
        )

    conversation = find_conversation(backend, viewer, owner, post_id)
    created = conversation is None
    if conversation is None:
        row = backend.insert(
            CONVERSATIONS,
            conversation_row(viewer, owner, post_id=post_id, post_title=post["title"]),
        )[0]
        conversation = backend.to_conversation(row)

    backend.insert(MESSAGES, message_row(conversation.id, viewer, INITIAL_MESSAGE.format(title=post["title"])))
    backend.update(CONVERSATIONS, {"last_message_at": utcnow()}, eq("id", conversation.id))

    storage.record_interest(post_id)
    storage.track_conversation(conversation.id)
    return InterestResult(conversation=conversation, created_conversation=created, notified_owner=notified)


def require_conversation(backend: BackendClient, conversation_id: int, viewer: Identity) -> ConversationRecord:
    conversation = backend.conversation(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    if not conversation.includes(viewer):
        raise OwnershipError("You are not part of this conversation")
    return conversation


def summarize(conversation: ConversationRecord, messages: list[MessageRecord], viewer: Identity) -> dict[str, Any]:
    other = conversation.other_party(viewer)
    return {
        "id": conversation.id,
        "other_party_name": other.display_name,
        "other_party_known": other.known,
        "post_id": conversation.post_id,
        "post_title": conversation.post_title,
        "last_message_at": conversation.last_message_at,
        "unread_count": unread_count(messages, viewer),
    }


def list_conversations(backend: BackendClient, storage: AppStorage, viewer: Identity) -> list[dict[str, Any]]:
    """Every conversation the viewer takes part in, most recently active first."""

    conversations = {record.id: record for record in backend.conversations(participant_filter(viewer))}
    tracked = [cid for cid in storage.get_conversation_ids() if cid not in conversations]
    if tracked:
        for record in backend.conversations(in_("id", tracked)):
            if record.includes(viewer):
                conversations[record.id] = record

    ordered = sorted(
        conversations.values(),
        key=lambda record: record.last_message_at.timestamp() if record.last_message_at else 0.0,
        reverse=True,
    )
    return [summarize(record, backend.messages(record.id), viewer) for record in ordered]


def message_view(message: MessageRecord, viewer: Identity) -> dict[str, Any]:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender.user_id,
        "sender_name": message.sender.display_name,
        "content": message.content,
        "read": message.read,
        "created_at": message.created_at,
        "is_own": message.is_from(viewer),
    }


def fetch_messages(backend: BackendClient, conversation_id: int) -> list[MessageRecord]:
    return backend.messages(conversation_id)


def mark_message_read(backend: BackendClient, message_id: int) -> None:
    backend.update(MESSAGES, dict(MARK_READ_PATCH), eq("id", message_id))


def mark_conversation_read(backend: BackendClient, conversation_id: int, viewer: Identity) -> list[MessageRecord]:
    """Mark every unread message from the other side read; returns the updated thread."""

    messages = fetch_messages(backend, conversation_id)
    unread_ids = [message.id for message in messages if not message.read and not message.is_from(viewer)]
    if not unread_ids:
        return messages
    backend.update(MESSAGES, dict(MARK_READ_PATCH), in_("id", unread_ids))
    marked = set(unread_ids)
    return [replace(message, read=True) if message.id in marked else message for message in messages]


def open_conversation(
    backend: BackendClient, conversation_id: int, viewer: Identity
) -> tuple[ConversationRecord, list[MessageRecord]]:
    conversation = require_conversation(backend, conversation_id, viewer)
    return conversation, mark_conversation_read(backend, conversation_id, viewer)


def send_message(backend: BackendClient, conversation_id: int, viewer: Identity, content: str) -> MessageRecord:
    text = (content or "").strip()
    if not text:
        raise InputValidationError({"content": "Message cannot be empty"})

    conversation = require_conversation(backend, conversation_id, viewer)
    row = backend.insert(MESSAGES, message_row(conversation_id, viewer, text))[0]
    backend.update(CONVERSATIONS, {"last_message_at": utcnow()}, eq("id", conversation_id))

    recipient = conversation.other_party(viewer)
    if recipient.user_id is not None:
        notify_safely(
            backend,
            recipient_id=recipient.user_id,
            type_=NotificationType.MESSAGE,
            content=message_preview(text),
            sender=viewer,
            post_id=conversation.post_id,
        )
    return normalize_message(row)


class MessageThread:
    """An open conversation: new messages are appended live and read on arrival."""

    def __init__(self, backend: BackendClient, viewer: Identity) -> None:
        self._backend = backend
        self.viewer = viewer
        self.conversation: ConversationRecord | None = None
        self.messages = LiveList(prepend=False)
        self._scope = ScopedSubscription(backend.hub, MESSAGES, "conversation_id", self._on_insert)

    def open(self, conversation_id: int) -> list[MessageRecord]:
        self.conversation, messages = open_conversation(self._backend, conversation_id, self.viewer)
        self.messages = LiveList(messages, prepend=False)
        self._scope.enter(conversation_id)
        return self.messages.items

    def _on_insert(self, event: RealtimeEvent) -> None:
        if event.new is None:
            return
        message = normalize_message(event.new)
        if not message.is_from(self.viewer) and not message.read:
            mark_message_read(self._backend, message.id)
            message = replace(message, read=True)
        self.messages.upsert(message)

    def send(self, content: str) -> MessageRecord:
        if self.conversation is None:
            raise RuntimeError("Open a conversation before sending")
        message = send_message(self._backend, self.conversation.id, self.viewer, content)
        self.messages.upsert(message)
        return message

    def close(self) -> None:
        self._scope.exit()
        self.conversation = None


__all__ = [
    "INTEREST_NOTIFICATION",
    "INITIAL_MESSAGE",
    "message_preview",
    "InterestResult",
    "find_conversation",
    "express_interest",
    "require_conversation",
    "summarize",
    "list_conversations",
    "message_view",
    "fetch_messages",
    "mark_message_read",
    "mark_conversation_read",
    "open_conversation",
    "send_message",
    "MessageThread",
]
