"""Checks for signing keys and storage credentials read from settings or the environment."""
from __future__ import annotations

import os
from typing import Final, Iterable

__all__ = ["MissingSecretError", "is_placeholder", "require_secret", "require_secrets"]


class MissingSecretError(RuntimeError):
    """Raised when one or more secrets are unset or still hold a placeholder."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = sorted(names)
        super().__init__(
            ", ".join(self.names) + " must be set and must not use a placeholder value"
        )


_PLACEHOLDER_VALUES: Final[frozenset[str]] = frozenset(
    {
        "changeme",
        "change-me",
        "placeholder",
        "example",
        "sample",
        "secret",
        "your-key-here",
        "your-secret-here",
    }
)


def is_placeholder(value: str | None) -> bool:
    normalized = (value or "").strip().lower()
    return normalized in _PLACEHOLDER_VALUES or not normalized


def require_secret(name: str, value: str | None = None) -> str:
    """Trimmed ``value``, falling back to the ``name`` environment variable."""

    return require_secrets({name: value})[name]


def require_secrets(values: dict[str, str | None]) -> dict[str, str]:
    """Validate several secrets at once so every missing name is reported together.

    ``None`` entries are looked up in the environment under their key.
    """

    resolved = {name: value if value is not None else os.getenv(name) for name, value in values.items()}
    missing = [name for name, value in resolved.items() if is_placeholder(value)]
    if missing:
        raise MissingSecretError(missing)
    return {name: value.strip() for name, value in resolved.items() if value is not None}
