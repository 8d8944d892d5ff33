"""One shape for conversations and messages, whatever columns a row was written with.

Older conversation rows only have ``user1_id``/``user2_id``; display names have
to be looked up from ``profiles``. Current rows describe each side with either
an account id or an anonymous id plus the name captured when the thread was
opened. The backend client maps every row through :func:`normalize_conversation`
so services only ever see :class:`ConversationRecord`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping
from uuid import UUID

from ..constants import ANONYMOUS_DISPLAY_NAME, UNKNOWN_PARTICIPANT_NAME
from ..viewer import Identity
from .filters import AnyOf, any_of, eq

LEGACY = "legacy"
PARTICIPANT = "participant"

_PARTICIPANT_ONLY_COLUMNS = ("anonymous1_id", "anonymous2_id", "participant1_name", "participant2_name")


@dataclass(frozen=True)
class Participant:
    user_id: UUID | None
    anonymous_id: str | None
    display_name: str

    @property
    def known(self) -> bool:
        return self.user_id is not None or self.anonymous_id is not None

    def matches(self, identity: Identity) -> bool:
        if identity.user_id is not None:
            return self.user_id is not None and self.user_id == identity.user_id
        return self.anonymous_id is not None and self.anonymous_id == identity.anonymous_id


UNKNOWN_PARTICIPANT = Participant(user_id=None, anonymous_id=None, display_name=UNKNOWN_PARTICIPANT_NAME)


@dataclass(frozen=True)
class ConversationRecord:
    id: int
    first: Participant
    second: Participant
    post_id: int | None
    post_title: str | None
    last_message_at: datetime | None
    created_at: datetime | None
    shape: str

    def includes(self, identity: Identity) -> bool:
        return self.first.matches(identity) or self.second.matches(identity)

    def other_party(self, identity: Identity) -> Participant:
        """The side that is not ``identity``, or :data:`UNKNOWN_PARTICIPANT` when neither side matches."""

        if self.first.matches(identity):
            return self.second if self.second.known else UNKNOWN_PARTICIPANT
        if self.second.matches(identity):
            return self.first if self.first.known else UNKNOWN_PARTICIPANT
        return UNKNOWN_PARTICIPANT


@dataclass(frozen=True)
class MessageRecord:
    id: int
    conversation_id: int
    sender: Participant
    content: str
    read: bool
    created_at: datetime | None

    def is_from(self, identity: Identity) -> bool:
        return self.sender.matches(identity)


def detect_shape(row: Mapping[str, Any]) -> str:
    if any(row.get(column) is not None for column in _PARTICIPANT_ONLY_COLUMNS):
        return PARTICIPANT
    return LEGACY


def _as_uuid(value: Any) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


def _from_legacy_row(row: Mapping[str, Any], profile_names: Mapping[UUID, str]) -> ConversationRecord:
    sides = []
    for column in ("user1_id", "user2_id"):
        user_id = _as_uuid(row.get(column))
        if user_id is None:
            sides.append(UNKNOWN_PARTICIPANT)
        else:
            name = profile_names.get(user_id) or UNKNOWN_PARTICIPANT_NAME
            sides.append(Participant(user_id=user_id, anonymous_id=None, display_name=name))
    return _record(row, sides[0], sides[1], LEGACY)


def _from_participant_row(row: Mapping[str, Any], profile_names: Mapping[UUID, str]) -> ConversationRecord:
    sides = []
    for index in (1, 2):
        user_id = _as_uuid(row.get(f"user{index}_id"))
        anonymous_id = row.get(f"anonymous{index}_id")
        name = row.get(f"participant{index}_name")
        if not name:
            if user_id is not None:
                name = profile_names.get(user_id) or UNKNOWN_PARTICIPANT_NAME
            elif anonymous_id:
                name = ANONYMOUS_DISPLAY_NAME
            else:
                name = UNKNOWN_PARTICIPANT_NAME
        sides.append(Participant(user_id=user_id, anonymous_id=anonymous_id, display_name=name))
    return _record(row, sides[0], sides[1], PARTICIPANT)


def _record(row: Mapping[str, Any], first: Participant, second: Participant, shape: str) -> ConversationRecord:
    return ConversationRecord(
        id=int(row["id"]),
        first=first,
        second=second,
        post_id=row.get("post_id"),
        post_title=row.get("post_title"),
        last_message_at=row.get("last_message_at"),
        created_at=row.get("created_at"),
        shape=shape,
    )


def normalize_conversation(row: Mapping[str, Any], profile_names: Mapping[UUID, str] | None = None) -> ConversationRecord:
    names = profile_names or {}
    if detect_shape(row) == PARTICIPANT:
        return _from_participant_row(row, names)
    return _from_legacy_row(row, names)


def normalize_message(row: Mapping[str, Any]) -> MessageRecord:
    sender_id = _as_uuid(row.get("sender_id"))
    sender_anonymous_id = row.get("sender_anonymous_id")
    if sender_id is None and not sender_anonymous_id:
        sender = UNKNOWN_PARTICIPANT
    else:
        sender = Participant(
            user_id=sender_id,
            anonymous_id=sender_anonymous_id,
            display_name=row.get("sender_name") or UNKNOWN_PARTICIPANT_NAME,
        )
    return MessageRecord(
        id=int(row["id"]),
        conversation_id=int(row["conversation_id"]),
        sender=sender,
        content=row.get("content") or "",
        read=bool(row.get("read")) or bool(row.get("read_by_recipient")),
        created_at=row.get("created_at"),
    )


def unread_count(messages: list[MessageRecord], viewer: Identity) -> int:
    return sum(1 for message in messages if not message.read and not message.is_from(viewer))


def participant_filter(viewer: Identity) -> AnyOf:
    """Conversations where either side is ``viewer``."""

    if viewer.user_id is not None:
        return any_of(eq("user1_id", viewer.user_id), eq("user2_id", viewer.user_id))
    return any_of(eq("anonymous1_id", viewer.anonymous_id), eq("anonymous2_id", viewer.anonymous_id))


def conversation_row(
    starter: Identity,
    recipient: Identity,
    *,
    post_id: int | None = None,
    post_title: str | None = None,
) -> dict[str, Any]:
    """Columns for a new conversation; always written in the participant shape."""

    return {
        "user1_id": starter.user_id,
        "anonymous1_id": starter.anonymous_id,
        "participant1_name": starter.label,
        "user2_id": recipient.user_id,
        "anonymous2_id": recipient.anonymous_id,
        "participant2_name": recipient.label,
        "post_id": post_id,
        "post_title": post_title,
    }


def message_row(conversation_id: int, sender: Identity, content: str) -> dict[str, Any]:
    return {
        "conversation_id": conversation_id,
        "sender_id": sender.user_id,
        "sender_anonymous_id": sender.anonymous_id,
        "sender_name": sender.label,
        "content": content,
        "read": False,
        "read_by_recipient": False,
    }


MARK_READ_PATCH: dict[str, Any] = {"read": True, "read_by_recipient": True}


__all__ = [
    "LEGACY",
    "PARTICIPANT",
    "Participant",
    "UNKNOWN_PARTICIPANT",
    "ConversationRecord",
    "MessageRecord",
    "detect_shape",
    "normalize_conversation",
    "normalize_message",
    "unread_count",
    "participant_filter",
    "conversation_row",
    "message_row",
    "MARK_READ_PATCH",
]
