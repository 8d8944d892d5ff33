"""Email/password accounts and bearer tokens for marketplace members."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Optional, Tuple
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..backend.client import BackendClient
from ..backend.filters import eq
from ..config import get_settings
from ..constants import PROFILES
from ..errors import AuthConfigurationError, AuthenticationError, ConflictError
from ..schemas.auth import RegisterRequest
from ..security.secrets import MissingSecretError, require_secret

logger = logging.getLogger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@lru_cache(maxsize=1)
def _get_jwt_secret() -> str:
    try:
        return require_secret("JWT_SECRET_KEY", get_settings().jwt_secret_key)
    except MissingSecretError as exc:
        raise AuthConfigurationError(str(exc)) from exc


def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt."""

    return _pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify that ``password`` matches ``hashed_password``."""

    try:
        return _pwd_context.verify(password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("Stored password hash could not be verified")
        return False


def create_access_token(subject: UUID, *, expires_minutes: Optional[int] = None) -> str:
    """Create a signed JWT holding the provided ``subject``."""

    settings = get_settings()
    expire_delta = timedelta(minutes=expires_minutes or settings.jwt_expires_minutes)
    now = datetime.now(timezone.utc)
    payload = {"sub": str(subject), "exp": now + expire_delta, "iat": now}
    return jwt.encode(payload, _get_jwt_secret(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> UUID:
    """Decode and validate a JWT, returning the embedded subject UUID."""

    try:
        payload = jwt.decode(token, _get_jwt_secret(), algorithms=[get_settings().jwt_algorithm])
    except JWTError as exc:
        raise AuthenticationError("Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Invalid token payload")
    try:
        return UUID(subject)
    except ValueError as exc:
        raise AuthenticationError("Invalid token payload") from exc


def register_user(backend: BackendClient, payload: RegisterRequest) -> Tuple[dict[str, Any], str]:
    """Persist a new profile and return it with an access token."""

    username = payload.username.strip()
    email = str(payload.email).lower()
    if backend.select(PROFILES, eq("username", username), limit=1):
        raise ConflictError("Username already in use")
    if backend.select(PROFILES, eq("email", email), limit=1):
        raise ConflictError("Email already registered")

    profile = backend.insert(
        PROFILES,
        {
            "username": username,
            "email": email,
            "hashed_password": hash_password(payload.password),
            "full_name": (payload.full_name or "").strip() or None,
        },
    )[0]
    logger.info("Registered profile %s", profile["id"])
    return profile, create_access_token(profile["id"])


def authenticate_user(backend: BackendClient, login: str, password: str) -> Optional[dict[str, Any]]:
    """Look the member up by email or username and check the password."""

    candidate = login.strip()
    column = "email" if "@" in candidate else "username"
    value = candidate.lower() if column == "email" else candidate
    rows = backend.select(PROFILES, eq(column, value), limit=1)
    if not rows:
        return None
    profile = rows[0]
    if not verify_password(password, profile["hashed_password"]):
        return None
    return profile


def login_user(backend: BackendClient, login: str, password: str) -> Tuple[dict[str, Any], str]:
    profile = authenticate_user(backend, login, password)
    if profile is None:
        raise AuthenticationError("Invalid credentials")
    return profile, create_access_token(profile["id"])


__all__ = [
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_access_token",
    "register_user",
    "authenticate_user",
    "login_user",
]
