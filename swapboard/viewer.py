"""The identity a request acts as: a signed-in profile or an anonymous device token."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping
from uuid import UUID

from .backend.filters import Filter, eq
from .constants import ANONYMOUS_DISPLAY_NAME, UNKNOWN_PARTICIPANT_NAME


@dataclass(frozen=True)
class Identity:
    """Exactly one of ``user_id`` and ``anonymous_id`` is set."""

    user_id: UUID | None = None
    anonymous_id: str | None = None
    display_name: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if (self.user_id is None) == (self.anonymous_id is None):
            raise ValueError("Identity needs exactly one of user_id or anonymous_id")
        if isinstance(self.user_id, str):
            object.__setattr__(self, "user_id", UUID(self.user_id))

    @classmethod
    def for_user(cls, user_id: UUID | str, display_name: str | None = None) -> "Identity":
        return cls(user_id=user_id, display_name=display_name)

    @classmethod
    def for_anonymous(cls, anonymous_id: str, display_name: str | None = None) -> "Identity":
        return cls(anonymous_id=anonymous_id, display_name=display_name)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def label(self) -> str:
        """Name to show for this identity when no display name was given."""

        if self.display_name:
            return self.display_name
        return UNKNOWN_PARTICIPANT_NAME if self.is_authenticated else ANONYMOUS_DISPLAY_NAME

    @property
    def key(self) -> str:
        return str(self.user_id) if self.user_id is not None else str(self.anonymous_id)

    def owner_filter(self) -> Filter:
        """Filter selecting rows whose owner columns point at this identity."""

        if self.user_id is not None:
            return eq("user_id", self.user_id)
        return eq("anonymous_id", self.anonymous_id)

    def owner_columns(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "anonymous_id": self.anonymous_id}

    def owns(self, row: Mapping[str, Any]) -> bool:
        if self.user_id is not None:
            owner = row.get("user_id")
            return owner is not None and str(owner) == str(self.user_id)
        owner_anon = row.get("anonymous_id")
        return owner_anon is not None and owner_anon == self.anonymous_id


__all__ = ["Identity"]
