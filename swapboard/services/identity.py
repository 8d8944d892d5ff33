"""Anonymous identity for visitors without an account."""
from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import ValidationError

from ..constants import ANONYMOUS_DISPLAY_NAME, UNKNOWN_PARTICIPANT_NAME
from ..local_state import AppStorage
from ..schemas.local import AnonymousProfile
from ..viewer import Identity

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_anonymous_id() -> str:
    """Return a fresh ``anon-<unix ms>-<9 base36 chars>`` token."""

    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"anon-{int(time.time() * 1000)}-{suffix}"


def _field(user: Mapping[str, Any] | Any, name: str) -> Any:
    if isinstance(user, Mapping):
        return user.get(name)
    return getattr(user, name, None)


def member_display_name(user: Mapping[str, Any] | Any) -> str:
    """Name shown for a signed-in member: email local part, then username."""

    email = _field(user, "email")
    if email and "@" in email:
        local = email.split("@", 1)[0]
        if local:
            return local
    return _field(user, "username") or UNKNOWN_PARTICIPANT_NAME


class AnonymousIdentityResolver:
    """Creates and remembers the anonymous id and profile kept in local state."""

    def __init__(self, storage: AppStorage) -> None:
        self.storage = storage

    def get_or_create_anonymous_id(self) -> str:
        anonymous_id = self.storage.get_anonymous_id()
        if anonymous_id:
            return anonymous_id
        anonymous_id = generate_anonymous_id()
        self.storage.set_anonymous_id(anonymous_id)
        if not self.storage.state.persistent:
            logger.warning("Anonymous id %s is memory-only and resets with the process", anonymous_id)
        return anonymous_id

    def get_profile(self) -> AnonymousProfile:
        anonymous_id = self.get_or_create_anonymous_id()
        raw = self.storage.get_anonymous_profile()
        if raw:
            try:
                profile = AnonymousProfile.model_validate(raw)
                if profile.anonymous_id == anonymous_id:
                    return profile
            except ValidationError:
                logger.warning("Replacing unreadable anonymous profile")
        now = datetime.now(timezone.utc)
        profile = AnonymousProfile(anonymous_id=anonymous_id, display_name=None, created_at=now, updated_at=now)
        self.storage.set_anonymous_profile(profile.to_state())
        return profile

    def set_display_name(self, display_name: str) -> AnonymousProfile:
        profile = self.get_profile()
        updated = profile.model_copy(
            update={"display_name": display_name.strip() or None, "updated_at": datetime.now(timezone.utc)}
        )
        self.storage.set_anonymous_profile(updated.to_state())
        return updated

    def display_name(self) -> str:
        return self.get_profile().display_name or ANONYMOUS_DISPLAY_NAME

    def anonymous_identity(self) -> Identity:
        return Identity.for_anonymous(self.get_or_create_anonymous_id(), display_name=self.display_name())

    def resolve_viewer_identity(self, current_user: Mapping[str, Any] | Any | None = None) -> Identity:
        """The signed-in member when there is one, otherwise the anonymous identity; never both."""

        if current_user is not None and _field(current_user, "id") is not None:
            return Identity.for_user(_field(current_user, "id"), display_name=member_display_name(current_user))
        return self.anonymous_identity()


__all__ = [
    "AnonymousIdentityResolver",
    "generate_anonymous_id",
    "member_display_name",
]
