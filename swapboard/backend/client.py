"""Single entry point the services use to reach tables, storage and realtime events."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import (
    COMMENTS,
    CONVERSATIONS,
    MESSAGES,
    POST_IMAGES,
    POSTS,
    PROFILES,
    USER_NOTIFICATIONS,
)
from ..errors import BackendError, StorageUploadError
from ..models import Comment, Conversation, Message, Post, PostImage, Profile, UserNotification
from .conversations import ConversationRecord, MessageRecord, normalize_conversation, normalize_message
from .filters import Predicate, compile_all, eq, in_
from .object_store import ObjectStore, StoredObject, get_object_store
from .realtime import Callback, RealtimeHub, Subscription, realtime_hub

logger = logging.getLogger(__name__)

TABLES: dict[str, type] = {
    POSTS: Post,
    POST_IMAGES: PostImage,
    COMMENTS: Comment,
    CONVERSATIONS: Conversation,
    MESSAGES: Message,
    USER_NOTIFICATIONS: UserNotification,
    PROFILES: Profile,
}


def row_to_dict(obj: Any) -> dict[str, Any]:
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


class BackendClient:
    """Query, write, upload and subscribe against the marketplace backend.

    Every successful write is published on the realtime hub so that live
    views (feed, message threads, notification bells) can apply it.
    """

    def __init__(
        self,
        session: Session,
        *,
        store: ObjectStore | None = None,
        hub: RealtimeHub | None = None,
        current_user_id: UUID | None = None,
    ) -> None:
        self.session = session
        self._store = store
        self.hub = hub or realtime_hub
        self.current_user_id = current_user_id

    @property
    def store(self) -> ObjectStore:
        if self._store is None:
            self._store = get_object_store()
        return self._store

    def _model(self, table: str) -> type:
        try:
            return TABLES[table]
        except KeyError as exc:
            raise ValueError(f"Unknown table {table!r}") from exc

    def _fail(self, action: str, table: str, exc: Exception) -> BackendError:
        self.session.rollback()
        logger.exception("Backend %s on %s failed", action, table)
        return BackendError(f"Unable to {action} {table}")

    def _check_columns(self, model: type, row: dict[str, Any]) -> None:
        known = {attr.key for attr in inspect(model).column_attrs}
        unknown = set(row) - known
        if unknown:
            raise ValueError(f"Unknown columns for {model.__name__}: {', '.join(sorted(unknown))}")

    def select(
        self,
        table: str,
        *filters: Predicate,
        order: str | None = None,
        desc: bool = False,
        range_: tuple[int, int] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return rows as dicts; ``range_`` is an inclusive ``(start, end)`` offset pair."""

        model = self._model(table)
        stmt = select(model)
        clause = compile_all(model, filters)
        if clause is not None:
            stmt = stmt.where(clause)
        if order:
            column = getattr(model, order)
            stmt = stmt.order_by(column.desc() if desc else column.asc(), model.id.desc() if desc else model.id.asc())
        if range_ is not None:
            start, end = range_
            stmt = stmt.offset(start).limit(max(end - start + 1, 0))
        elif limit is not None:
            stmt = stmt.limit(limit)
        try:
            return [row_to_dict(obj) for obj in self.session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise self._fail("read", table, exc) from exc

    def get(self, table: str, row_id: Any) -> dict[str, Any] | None:
        rows = self.select(table, eq("id", row_id), limit=1)
        return rows[0] if rows else None

    def count(self, table: str, *filters: Predicate) -> int:
        model = self._model(table)
        stmt = select(func.count()).select_from(model)
        clause = compile_all(model, filters)
        if clause is not None:
            stmt = stmt.where(clause)
        try:
            return int(self.session.scalar(stmt) or 0)
        except SQLAlchemyError as exc:
            raise self._fail("count", table, exc) from exc

    def insert(self, table: str, rows: dict[str, Any] | Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        model = self._model(table)
        payload = [rows] if isinstance(rows, dict) else list(rows)
        for row in payload:
            self._check_columns(model, row)
        objects = [model(**row) for row in payload]
        try:
            self.session.add_all(objects)
            self.session.commit()
            for obj in objects:
                self.session.refresh(obj)
        except SQLAlchemyError as exc:
            raise self._fail("insert into", table, exc) from exc
        inserted = [row_to_dict(obj) for obj in objects]
        for row in inserted:
            self.hub.publish(table, "INSERT", new=row)
        return inserted

    def update(self, table: str, patch: dict[str, Any], *filters: Predicate) -> list[dict[str, Any]]:
        """Apply ``patch`` to every matching row; at least one filter is required."""

        if not filters:
            raise ValueError("update requires at least one filter")
        model = self._model(table)
        self._check_columns(model, patch)
        try:
            objects = list(self.session.scalars(select(model).where(compile_all(model, filters))))
            before = [row_to_dict(obj) for obj in objects]
            for obj in objects:
                for key, value in patch.items():
                    setattr(obj, key, value)
            self.session.commit()
            for obj in objects:
                self.session.refresh(obj)
        except SQLAlchemyError as exc:
            raise self._fail("update", table, exc) from exc
        updated = [row_to_dict(obj) for obj in objects]
        for old, new in zip(before, updated):
            self.hub.publish(table, "UPDATE", new=new, old=old)
        return updated

    def delete(self, table: str, *filters: Predicate) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("delete requires at least one filter")
        model = self._model(table)
        try:
            objects = list(self.session.scalars(select(model).where(compile_all(model, filters))))
            removed = [row_to_dict(obj) for obj in objects]
            for obj in objects:
                self.session.delete(obj)
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail("delete from", table, exc) from exc
        for row in removed:
            self.hub.publish(table, "DELETE", old=row)
        return removed

    def get_current_user(self) -> dict[str, Any] | None:
        if self.current_user_id is None:
            return None
        return self.get(PROFILES, self.current_user_id)

    def upload_file(self, bucket: str, path: str, data: bytes, content_type: str) -> StoredObject:
        try:
            return self.store.upload(bucket, path, data, content_type)
        except StorageUploadError:
            raise
        except Exception as exc:  # pragma: no cover - storage backends raise their own types
            logger.exception("Upload of %s/%s failed", bucket, path)
            raise StorageUploadError("Unable to store file") from exc

    def get_public_url(self, bucket: str, path: str) -> str:
        return self.store.public_url(bucket, path)

    def remove_files(self, bucket: str, paths: Iterable[str]) -> None:
        try:
            self.store.remove(bucket, [path for path in paths if path])
        except Exception:  # pragma: no cover - best effort cleanup
            logger.warning("Removing files from %s failed", bucket, exc_info=True)

    def subscribe(
        self,
        table: str,
        event: str,
        filters: Predicate | Iterable[Predicate] | None,
        callback: Callback,
    ) -> Subscription:
        self._model(table)
        return self.hub.subscribe(table, event, filters, callback)

    # Normalised conversations and messages

    def profile_names(self, user_ids: Iterable[UUID | None]) -> dict[UUID, str]:
        ids = {user_id for user_id in user_ids if user_id is not None}
        if not ids:
            return {}
        names: dict[UUID, str] = {}
        for row in self.select(PROFILES, in_("id", ids)):
            names[row["id"]] = row.get("username") or _email_local_part(row.get("email")) or ""
        return names

    def conversations(self, *filters: Predicate) -> list[ConversationRecord]:
        rows = self.select(CONVERSATIONS, *filters, order="last_message_at", desc=True)
        names = self.profile_names(
            user_id for row in rows for user_id in (row.get("user1_id"), row.get("user2_id"))
        )
        return [normalize_conversation(row, names) for row in rows]

    def conversation(self, conversation_id: int) -> ConversationRecord | None:
        records = self.conversations(eq("id", conversation_id))
        return records[0] if records else None

    def to_conversation(self, row: dict[str, Any]) -> ConversationRecord:
        return normalize_conversation(row, self.profile_names((row.get("user1_id"), row.get("user2_id"))))

    def messages(self, conversation_id: int) -> list[MessageRecord]:
        rows = self.select(MESSAGES, eq("conversation_id", conversation_id), order="created_at")
        return [normalize_message(row) for row in rows]


def _email_local_part(email: str | None) -> str | None:
    if not email:
        return None
    return email.split("@", 1)[0] or None


__all__ = ["BackendClient", "TABLES", "row_to_dict"]
