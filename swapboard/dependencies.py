"""FastAPI dependencies: backend client, signed-in member and viewer identity.

HTTP requests carry no device storage of their own. Each request gets an
in-memory :class:`AppStorage` seeded from the ``X-Anonymous-Id`` and
``X-Anonymous-Name`` headers; the anonymous id in use is echoed back in the
``X-Anonymous-Id`` response header so the caller can keep it.
"""
from __future__ import annotations

from typing import Any

from fastapi import Depends, Request, Response, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .backend.client import BackendClient
from .constants import PROFILES
from .database import get_session
from .errors import AuthenticationError
from .local_state import AppStorage, MemoryState
from .services.auth_service import decode_access_token
from .services.identity import AnonymousIdentityResolver, member_display_name
from .viewer import Identity

ANONYMOUS_ID_HEADER = "X-Anonymous-Id"
ANONYMOUS_NAME_HEADER = "X-Anonymous-Name"
_MAX_ANONYMOUS_ID_LENGTH = 64

_security = HTTPBearer(auto_error=False)


def get_backend(db: Session = Depends(get_session)) -> BackendClient:
    return BackendClient(db)


def get_storage(request: Request) -> AppStorage:
    storage = AppStorage(MemoryState())
    anonymous_id = (request.headers.get(ANONYMOUS_ID_HEADER) or "").strip()
    if anonymous_id and len(anonymous_id) <= _MAX_ANONYMOUS_ID_LENGTH:
        storage.set_anonymous_id(anonymous_id)
    display_name = (request.headers.get(ANONYMOUS_NAME_HEADER) or "").strip()
    if display_name:
        AnonymousIdentityResolver(storage).set_display_name(display_name)
    return storage


def get_resolver(storage: AppStorage = Depends(get_storage)) -> AnonymousIdentityResolver:
    return AnonymousIdentityResolver(storage)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    backend: BackendClient = Depends(get_backend),
) -> dict[str, Any]:
    """Resolve the signed-in member from the bearer token."""

    if not credentials or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing bearer token")

    user_id = decode_access_token(credentials.credentials)
    profile = backend.get(PROFILES, user_id)
    if profile is None:
        raise AuthenticationError("Invalid token")
    backend.current_user_id = user_id
    return profile


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    backend: BackendClient = Depends(get_backend),
) -> dict[str, Any] | None:
    """Return the signed-in member when a valid bearer token is provided."""

    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    try:
        user_id = decode_access_token(credentials.credentials)
    except AuthenticationError:
        return None
    profile = backend.get(PROFILES, user_id)
    if profile is not None:
        backend.current_user_id = user_id
    return profile


async def get_viewer(
    response: Response,
    resolver: AnonymousIdentityResolver = Depends(get_resolver),
    current_user: dict[str, Any] | None = Depends(get_optional_user),
) -> Identity:
    """Bearer token first, then the anonymous id header, else a fresh anonymous id."""

    identity = resolver.resolve_viewer_identity(current_user)
    if identity.anonymous_id is not None:
        response.headers[ANONYMOUS_ID_HEADER] = identity.anonymous_id
    return identity


def resolve_socket_viewer(websocket: WebSocket, backend: BackendClient) -> Identity | None:
    """Identify a websocket client from its bearer token or anonymous id.

    Browsers cannot set headers on a websocket handshake, so ``token`` and
    ``anonymous_id`` query parameters are accepted as well. Returns ``None``
    when the client sent neither.
    """

    scheme, _, credentials = (websocket.headers.get("authorization") or "").partition(" ")
    token = credentials.strip() if scheme.lower() == "bearer" else ""
    token = token or (websocket.query_params.get("token") or "").strip()
    if token:
        user_id = decode_access_token(token)
        profile = backend.get(PROFILES, user_id)
        if profile is None:
            raise AuthenticationError("Invalid token")
        return Identity.for_user(user_id, display_name=member_display_name(profile))

    anonymous_id = (
        websocket.headers.get(ANONYMOUS_ID_HEADER) or websocket.query_params.get("anonymous_id") or ""
    ).strip()
    if anonymous_id and len(anonymous_id) <= _MAX_ANONYMOUS_ID_LENGTH:
        return Identity.for_anonymous(anonymous_id)
    return None


__all__ = [
    "ANONYMOUS_ID_HEADER",
    "ANONYMOUS_NAME_HEADER",
    "get_backend",
    "get_storage",
    "get_resolver",
    "get_current_user",
    "get_optional_user",
    "get_viewer",
    "resolve_socket_viewer",
]
