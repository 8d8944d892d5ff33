"""Error types raised by the marketplace services.

Every failure is scoped to the action that triggered it; the HTTP layer turns
these into JSON responses through a single exception handler.
"""
from __future__ import annotations

from typing import Mapping


class MarketplaceError(RuntimeError):
    """Base class for failures surfaced to the caller."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputValidationError(MarketplaceError):
    """Raised when submitted fields are missing or malformed; ``errors`` maps field to message."""

    status_code = 422
    default_message = "Some fields need attention"

    def __init__(self, errors: Mapping[str, str], message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.errors = dict(errors)


class ListingValidationError(InputValidationError):
    """Raised when a listing form is missing required fields."""

    default_message = "Listing is incomplete"


class BackendError(MarketplaceError):
    """Raised when a request to the database or object store fails."""

    status_code = 502


class NotFoundError(MarketplaceError):
    status_code = 404


class OwnershipError(MarketplaceError):
    """Raised when the viewer tries to mutate something they do not own."""

    status_code = 403


class AuthenticationError(MarketplaceError):
    status_code = 401


class ConflictError(MarketplaceError):
    status_code = 409


class AuthConfigurationError(MarketplaceError):
    """Raised when the token signing key is missing or a placeholder."""

    status_code = 500


class StorageConfigurationError(MarketplaceError):
    """Raised when the object store settings are missing or invalid."""

    status_code = 500


class StorageUploadError(BackendError):
    """Raised when writing an object to storage fails."""


__all__ = [
    "MarketplaceError",
    "InputValidationError",
    "ListingValidationError",
    "BackendError",
    "NotFoundError",
    "OwnershipError",
    "AuthenticationError",
    "ConflictError",
    "AuthConfigurationError",
    "StorageConfigurationError",
    "StorageUploadError",
]
