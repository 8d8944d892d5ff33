"""WebSocket endpoint relaying backend change events to clients."""
from __future__ import annotations

import json
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from ..backend.client import TABLES, BackendClient
from ..backend.conversations import normalize_message
from ..backend.filters import Filter, parse_filter
from ..backend.realtime import EVENT_TYPES, RowShaper, websocket_relay
from ..constants import COMMENTS, MESSAGES, POST_IMAGES, POSTS, USER_NOTIFICATIONS
from ..database import create_session
from ..dependencies import resolve_socket_viewer
from ..errors import AuthenticationError, MarketplaceError, OwnershipError
from ..services.conversation_service import require_conversation
from ..viewer import Identity

router = APIRouter()
logger = logging.getLogger(__name__)

PUBLIC_TABLES = frozenset({POSTS, POST_IMAGES, COMMENTS})

# Private tables must be scoped to one conversation or one recipient.
SCOPED_TABLES = {MESSAGES: "conversation_id", USER_NOTIFICATIONS: "recipient_id"}

RELAYED_TABLES = PUBLIC_TABLES | frozenset(SCOPED_TABLES)

# Anonymous ids authorize edits and replies, so they never leave the server.
HIDDEN_COLUMNS = frozenset({"anonymous_id", "sender_anonymous_id", "anonymous1_id", "anonymous2_id"})


def _scope_filter(table: str, filters: list[Filter]) -> Filter:
    column = SCOPED_TABLES[table]
    for item in filters:
        if item.column == column and item.op == "eq":
            return item
    raise ValueError(f"{table} subscriptions need a {column}=eq.<id> filter")


def _authorize(backend: BackendClient, websocket: WebSocket, table: str, filters: list[Filter]) -> Identity | None:
    """Check the client may watch ``table`` with ``filters``; returns the viewer, if any."""

    if any(item.column in HIDDEN_COLUMNS for item in filters):
        raise ValueError("Filtering on identity columns is not allowed")
    viewer = resolve_socket_viewer(websocket, backend)
    if table not in SCOPED_TABLES:
        return viewer

    scope = _scope_filter(table, filters)
    if viewer is None:
        raise AuthenticationError("Sign in or send an anonymous id to watch private tables")
    if table == MESSAGES:
        require_conversation(backend, int(scope.value), viewer)
    elif viewer.user_id is None or UUID(str(scope.value)) != viewer.user_id:
        raise OwnershipError("Notifications can only be watched by their recipient")
    return viewer


def _row_shaper(table: str, viewer: Identity | None) -> RowShaper:
    def shape(row: dict[str, Any]) -> dict[str, Any]:
        public = {key: value for key, value in row.items() if key not in HIDDEN_COLUMNS}
        if viewer is not None:
            if table == MESSAGES:
                public["is_own"] = normalize_message(row).is_from(viewer)
            elif table == POSTS:
                public["is_owner"] = viewer.owns(row)
            elif table == COMMENTS:
                public["is_own"] = viewer.owns(row)
        return public

    return shape


@router.websocket("/ws/{table}")
async def table_changes(
    websocket: WebSocket,
    table: str,
    filter_: str | None = Query(None, alias="filter"),
    event: str = Query("INSERT"),
) -> None:
    """Stream ``{table, eventType, new, old}`` frames for rows of ``table``.

    ``filter`` takes the ``column=op.value`` form, e.g. ``conversation_id=eq.7``.
    ``Messages`` needs a ``conversation_id`` filter for a conversation the
    client takes part in and ``UserNotifications`` a ``recipient_id`` filter
    naming the signed-in member. Identity columns are stripped from every row.
    """

    event = event.upper()
    session = create_session()
    try:
        if table not in RELAYED_TABLES or event not in EVENT_TYPES:
            raise ValueError(f"Unsupported subscription {table}/{event}")
        filters = [parse_filter(filter_)] if filter_ else []
        for item in filters:
            item.compile(TABLES[table])
        viewer = _authorize(BackendClient(session), websocket, table, filters)
    except (ValueError, MarketplaceError) as exc:
        logger.info("Rejected realtime subscription to %s: %s", table, exc)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        session.close()

    await websocket_relay.connect(websocket, table, filters, event, shape=_row_shaper(table, viewer))
    logger.info("Realtime socket for %s connected from %s", table, websocket.client)
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            if raw.strip().lower() == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    finally:
        await websocket_relay.disconnect(websocket)
        logger.info("Realtime socket for %s disconnected", table)


__all__ = ["router", "RELAYED_TABLES", "HIDDEN_COLUMNS"]
