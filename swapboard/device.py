"""Wiring for running the marketplace services outside a web request.

A :class:`DeviceSession` pairs a database session with the device-local state
file, so scripts and tests drive the same services the HTTP routes use while
keeping the anonymous identity, drafts and tracked posts across runs.
"""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from .backend.client import BackendClient
from .backend.object_store import ObjectStore
from .backend.realtime import RealtimeHub
from .config import get_settings
from .constants import PROFILES
from .database import create_session
from .local_state import AppStorage, StatePort, open_state
from .services.identity import AnonymousIdentityResolver
from .viewer import Identity

logger = logging.getLogger(__name__)


class DeviceSession:
    def __init__(
        self,
        *,
        state: StatePort | None = None,
        session: Session | None = None,
        store: ObjectStore | None = None,
        hub: RealtimeHub | None = None,
    ) -> None:
        self.storage = AppStorage(state if state is not None else open_state(get_settings().local_state_path))
        self._owns_session = session is None
        self.session = session if session is not None else create_session()
        self.backend = BackendClient(self.session, store=store, hub=hub)
        self.resolver = AnonymousIdentityResolver(self.storage)

    def sign_in(self, user_id: UUID) -> dict[str, Any] | None:
        self.backend.current_user_id = user_id
        return self.backend.get(PROFILES, user_id)

    def sign_out(self) -> None:
        self.backend.current_user_id = None

    @property
    def viewer(self) -> Identity:
        return self.resolver.resolve_viewer_identity(self.backend.get_current_user())

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "DeviceSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = ["DeviceSession"]
