"""Device-local state: anonymous identity, tracked posts, drafts and preferences.

``StatePort`` is the small get/set/remove interface the services depend on.
``JsonFileState`` persists to a JSON file and degrades to memory when the file
cannot be used; ``MemoryState`` resets with the process. ``AppStorage`` layers
the typed keys on top of whichever port it is given.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from .schemas.local import EditIntent, LocalPostRef, StorageInfo, UserPreferences
from .schemas.posts import ListingDraft

logger = logging.getLogger(__name__)

ANONYMOUS_ID_KEY = "anonymousId"
ANONYMOUS_PROFILE_KEY = "anonymousProfile"
USER_POSTS_KEY = "userPosts"
EDIT_POST_KEY = "editPost"
PREFERENCES_KEY = "userPreferences"
DRAFT_POST_KEY = "draftPost"
CONVERSATIONS_KEY = "anonymousConversations"
INTERESTS_KEY = "interests"


class StatePort(Protocol):
    kind: str
    persistent: bool

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryState:
    """In-process store; values are JSON round-tripped so callers never share references."""

    kind = "memory"
    persistent = False

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Any | None:
        raw = self._values.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._values[key] = json.dumps(value, default=str)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()


class StateUnavailableError(OSError):
    """Raised when the state file cannot be read or created."""


class JsonFileState:
    """Persist state as a single JSON object on disk."""

    kind = "file"

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path).expanduser()
        self._values: dict[str, Any] = {}
        self.persistent = True
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if self._path.exists():
                loaded = json.loads(self._path.read_text(encoding="utf-8") or "{}")
                if isinstance(loaded, dict):
                    self._values = loaded
            else:
                self._flush()
        except (OSError, json.JSONDecodeError) as exc:
            raise StateUnavailableError(f"State file {self._path} is not usable: {exc}") from exc

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Any | None:
        value = self._values.get(key)
        return json.loads(json.dumps(value)) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        self._values[key] = json.loads(json.dumps(value, default=str))
        self._save()

    def remove(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            self._save()

    def clear(self) -> None:
        self._values.clear()
        self._save()

    def _save(self) -> None:
        if not self.persistent:
            return
        try:
            self._flush()
        except OSError:
            # Keep serving from memory for the rest of the process.
            logger.warning("Writing %s failed; local state is now memory-only", self._path, exc_info=True)
            self.persistent = False

    def _flush(self) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._values, indent=2, default=str), encoding="utf-8")
        os.replace(tmp_path, self._path)


def open_state(path: str | os.PathLike[str] | None) -> StatePort:
    """Return a file-backed store, or a memory store when the file is unusable."""

    if not path:
        return MemoryState()
    try:
        return JsonFileState(path)
    except StateUnavailableError:
        logger.warning("Local state unavailable at %s, falling back to memory", path, exc_info=True)
        return MemoryState()


class AppStorage:
    """Typed access to the keys the marketplace keeps on the device."""

    def __init__(self, state: StatePort) -> None:
        self.state = state

    # Posts created from this device
    def get_user_posts(self) -> list[LocalPostRef]:
        refs: list[LocalPostRef] = []
        for raw in self.state.get(USER_POSTS_KEY) or []:
            try:
                refs.append(LocalPostRef.model_validate(raw))
            except ValidationError:
                logger.warning("Dropping malformed local post entry: %r", raw)
        return refs

    def add_user_post(self, post: LocalPostRef) -> list[LocalPostRef]:
        posts = [ref for ref in self.get_user_posts() if ref.id != post.id]
        posts.append(post)
        self._save_posts(posts)
        return posts

    def update_user_post(self, post_id: int, **updates: Any) -> list[LocalPostRef]:
        posts = self.get_user_posts()
        for index, ref in enumerate(posts):
            if ref.id == post_id:
                posts[index] = ref.model_copy(update=updates)
                self._save_posts(posts)
                break
        return posts

    def remove_user_post(self, post_id: int) -> list[LocalPostRef]:
        posts = [ref for ref in self.get_user_posts() if ref.id != post_id]
        self._save_posts(posts)
        return posts

    def _save_posts(self, posts: list[LocalPostRef]) -> None:
        self.state.set(USER_POSTS_KEY, [ref.to_state() for ref in posts])

    # Anonymous identity
    def get_anonymous_id(self) -> str | None:
        value = self.state.get(ANONYMOUS_ID_KEY)
        return value if isinstance(value, str) and value else None

    def set_anonymous_id(self, anonymous_id: str) -> None:
        self.state.set(ANONYMOUS_ID_KEY, anonymous_id)

    def get_anonymous_profile(self) -> dict[str, Any] | None:
        value = self.state.get(ANONYMOUS_PROFILE_KEY)
        return value if isinstance(value, dict) else None

    def set_anonymous_profile(self, profile: dict[str, Any]) -> None:
        self.state.set(ANONYMOUS_PROFILE_KEY, profile)

    # Edit intent
    def set_edit_intent(self, intent: EditIntent) -> None:
        self.state.set(EDIT_POST_KEY, intent.to_state())

    def get_edit_intent(self) -> EditIntent | None:
        raw = self.state.get(EDIT_POST_KEY)
        if not raw:
            return None
        try:
            return EditIntent.model_validate(raw)
        except ValidationError:
            return None

    def clear_edit_intent(self) -> None:
        self.state.remove(EDIT_POST_KEY)

    # Preferences
    def get_user_preferences(self) -> UserPreferences:
        raw = self.state.get(PREFERENCES_KEY)
        if not raw:
            return UserPreferences()
        try:
            return UserPreferences.model_validate(raw)
        except ValidationError:
            return UserPreferences()

    def set_user_preferences(self, preferences: UserPreferences) -> None:
        self.state.set(PREFERENCES_KEY, preferences.to_state())

    # Composer drafts
    def save_draft_post(self, draft: ListingDraft) -> None:
        self.state.set(DRAFT_POST_KEY, draft.model_dump(mode="json"))

    def get_draft_post(self) -> ListingDraft | None:
        raw = self.state.get(DRAFT_POST_KEY)
        if not raw:
            return None
        try:
            return ListingDraft.model_validate(raw)
        except ValidationError:
            logger.warning("Discarding unreadable composer draft")
            return None

    def clear_draft_post(self) -> None:
        self.state.remove(DRAFT_POST_KEY)

    # Conversations and interests of the anonymous viewer
    def get_conversation_ids(self) -> list[int]:
        return [int(value) for value in self.state.get(CONVERSATIONS_KEY) or []]

    def track_conversation(self, conversation_id: int) -> None:
        ids = self.get_conversation_ids()
        if conversation_id not in ids:
            ids.append(conversation_id)
            self.state.set(CONVERSATIONS_KEY, ids)

    def get_interests(self) -> list[int]:
        return [int(value) for value in self.state.get(INTERESTS_KEY) or []]

    def record_interest(self, post_id: int) -> None:
        interests = self.get_interests()
        if post_id not in interests:
            interests.append(post_id)
            self.state.set(INTERESTS_KEY, interests)

    def has_interest(self, post_id: int) -> bool:
        return post_id in self.get_interests()

    def storage_info(self) -> StorageInfo:
        return StorageInfo(
            type=self.state.kind,
            is_persistent=self.state.persistent,
            user_posts=len(self.get_user_posts()),
            anonymous_id=self.get_anonymous_id(),
        )


__all__ = [
    "StatePort",
    "MemoryState",
    "JsonFileState",
    "StateUnavailableError",
    "open_state",
    "AppStorage",
]
