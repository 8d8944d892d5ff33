"""In-process publish/subscribe for row change events.

The backend client publishes after every successful write. Views subscribe
with a table, an event type and optional filters; nothing is replayed for a
subscriber that was not listening when an event was published.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Hashable, Iterable, Iterator

from fastapi import WebSocket

from .filters import Predicate, eq, matches_all

logger = logging.getLogger(__name__)

EVENT_TYPES = {"INSERT", "UPDATE", "DELETE", "*"}


@dataclass(frozen=True)
class RealtimeEvent:
    table: str
    type: str
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None
    commit_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def record(self) -> dict[str, Any]:
        return self.new if self.new is not None else (self.old or {})

    def to_message(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "eventType": self.type,
            "new": self.new,
            "old": self.old,
            "commit_timestamp": self.commit_timestamp.isoformat(),
        }


Callback = Callable[[RealtimeEvent], Any]


class Subscription:
    """Handle returned by :meth:`RealtimeHub.subscribe`."""

    def __init__(
        self,
        hub: "RealtimeHub",
        table: str,
        event: str,
        filters: tuple[Predicate, ...],
        callback: Callback,
        loop: asyncio.AbstractEventLoop | None,
    ) -> None:
        self._hub = hub
        self.table = table
        self.event = event
        self.filters = filters
        self.callback = callback
        self.loop = loop
        self.active = True

    def wants(self, event: RealtimeEvent) -> bool:
        if not self.active or event.table != self.table:
            return False
        if self.event != "*" and self.event != event.type:
            return False
        return matches_all(event.record, self.filters)

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._hub._remove(self)


class RealtimeHub:
    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()
        self._tasks: set[asyncio.Future[Any]] = set()

    def subscribe(
        self,
        table: str,
        event: str = "INSERT",
        filters: Predicate | Iterable[Predicate] | None = None,
        callback: Callback | None = None,
    ) -> Subscription:
        if callback is None:
            raise ValueError("A callback is required to subscribe")
        event = event.upper()
        if event not in EVENT_TYPES:
            raise ValueError(f"Unsupported realtime event: {event}")
        if filters is None:
            predicates: tuple[Predicate, ...] = ()
        elif isinstance(filters, (list, tuple)):
            predicates = tuple(filters)
        else:
            predicates = (filters,)
        try:
            loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        subscription = Subscription(self, table, event, predicates, callback, loop)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                pass

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(
        self,
        table: str,
        event_type: str,
        *,
        new: dict[str, Any] | None = None,
        old: dict[str, Any] | None = None,
    ) -> int:
        """Deliver an event to every matching subscriber and return how many were notified."""

        event = RealtimeEvent(table=table, type=event_type.upper(), new=new, old=old)
        with self._lock:
            targets = [sub for sub in self._subscriptions if sub.wants(event)]
        for subscription in targets:
            self._dispatch(subscription, event)
        return len(targets)

    def _dispatch(self, subscription: Subscription, event: RealtimeEvent) -> None:
        try:
            result = subscription.callback(event)
        except Exception:
            logger.warning("Realtime callback for %s %s failed", event.table, event.type, exc_info=True)
            return
        if inspect.isawaitable(result):
            self._schedule(subscription.loop, result)

    def _schedule(self, loop: asyncio.AbstractEventLoop | None, awaitable: Any) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if loop is None or loop.is_closed():
            loop = running
        if loop is None:
            asyncio.run(_guarded(awaitable))
            return
        if loop is running:
            task = loop.create_task(_guarded(awaitable))
        else:
            task = asyncio.run_coroutine_threadsafe(_guarded(awaitable), loop)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def clear(self) -> None:
        with self._lock:
            for subscription in self._subscriptions:
                subscription.active = False
            self._subscriptions.clear()


async def _guarded(awaitable: Any) -> None:
    try:
        await awaitable
    except Exception:
        logger.warning("Realtime coroutine callback failed", exc_info=True)


class ScopedSubscription:
    """Subscribe while a scope key is entered and tear down when it is left.

    ``enter(7)`` subscribes to rows whose ``column`` equals 7; entering a
    different key first drops the previous subscription, so callbacks never
    fire for a stale scope.
    """

    def __init__(self, hub: RealtimeHub, table: str, column: str, callback: Callback, *, event: str = "INSERT") -> None:
        self._hub = hub
        self.table = table
        self.column = column
        self.event = event
        self._callback = callback
        self._subscription: Subscription | None = None
        self.scope_key: Hashable | None = None

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def enter(self, scope_key: Hashable) -> None:
        if self.active and scope_key == self.scope_key:
            return
        self.exit()
        self._subscription = self._hub.subscribe(
            self.table, self.event, eq(self.column, scope_key), self._callback
        )
        self.scope_key = scope_key

    def exit(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
        self._subscription = None
        self.scope_key = None

    def __enter__(self) -> "ScopedSubscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.exit()


class LiveList:
    """Local copy of a list of rows kept current by id-based upsert."""

    def __init__(self, items: Iterable[Any] = (), *, key: str = "id", prepend: bool = True) -> None:
        self._key = key
        self._prepend = prepend
        self._items: list[Any] = list(items)
        self._lock = threading.Lock()

    def _id_of(self, item: Any) -> Any:
        if isinstance(item, dict):
            return item.get(self._key)
        return getattr(item, self._key, None)

    @property
    def items(self) -> list[Any]:
        with self._lock:
            return list(self._items)

    def upsert(self, item: Any) -> bool:
        """Insert ``item`` or replace the entry with the same id; returns True when it was new."""

        item_id = self._id_of(item)
        with self._lock:
            for index, existing in enumerate(self._items):
                if item_id is not None and self._id_of(existing) == item_id:
                    self._items[index] = item
                    return False
            if self._prepend:
                self._items.insert(0, item)
            else:
                self._items.append(item)
            return True

    def remove(self, item_id: Any) -> bool:
        with self._lock:
            for index, existing in enumerate(self._items):
                if self._id_of(existing) == item_id:
                    del self._items[index]
                    return True
        return False

    def apply(self, event: RealtimeEvent, transform: Callable[[dict[str, Any]], Any] | None = None) -> bool:
        if event.type == "DELETE":
            return self.remove((event.old or {}).get(self._key))
        if event.new is None:
            return False
        return self.upsert(transform(event.new) if transform else event.new)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items)


RowShaper = Callable[[dict[str, Any]], dict[str, Any]]


class WebSocketRelay:
    """Forwards hub events to WebSocket connections as JSON text frames.

    A connection may pass ``shape`` to rewrite each relayed row, e.g. to drop
    columns its client must not see.
    """

    def __init__(self, hub: RealtimeHub) -> None:
        self._hub = hub
        self._connections: dict[WebSocket, Subscription] = {}
        self._lock = asyncio.Lock()

    async def connect(
        self,
        websocket: WebSocket,
        table: str,
        filters: Iterable[Predicate] = (),
        event: str = "INSERT",
        shape: RowShaper | None = None,
    ) -> None:
        await websocket.accept()

        async def _forward(evt: RealtimeEvent) -> None:
            message = evt.to_message()
            if shape is not None:
                for key in ("new", "old"):
                    if message[key] is not None:
                        message[key] = shape(message[key])
            try:
                await websocket.send_text(json.dumps(message, default=str))
            except Exception:
                await self.disconnect(websocket)

        subscription = self._hub.subscribe(table, event, tuple(filters), _forward)
        async with self._lock:
            self._connections[websocket] = subscription

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            subscription = self._connections.pop(websocket, None)
        if subscription is not None:
            subscription.unsubscribe()

    @property
    def connection_count(self) -> int:
        return len(self._connections)


realtime_hub = RealtimeHub()
websocket_relay = WebSocketRelay(realtime_hub)


__all__ = [
    "RealtimeEvent",
    "Subscription",
    "RealtimeHub",
    "ScopedSubscription",
    "LiveList",
    "RowShaper",
    "WebSocketRelay",
    "realtime_hub",
    "websocket_relay",
]
