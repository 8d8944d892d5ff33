"""Tests for the realtime hub, scoped subscriptions and live views."""
from __future__ import annotations

import asyncio
import os
from typing import Iterator

import pytest
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_realtime.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from swapboard.backend.client import BackendClient  # noqa: E402
from swapboard.backend.filters import eq, parse_filter  # noqa: E402
from swapboard.backend.realtime import LiveList, RealtimeEvent, RealtimeHub, ScopedSubscription  # noqa: E402
from swapboard.constants import MESSAGES, POSTS, PROFILES  # noqa: E402
from swapboard.database import Base, SessionLocal, engine  # noqa: E402
from swapboard.local_state import AppStorage, MemoryState  # noqa: E402
from swapboard.models import Comment, Conversation, Message, Post, PostImage, Profile, UserNotification  # noqa: E402
from swapboard.schemas.posts import FeedQuery  # noqa: E402
from swapboard.services.comment_service import CommentThread  # noqa: E402
from swapboard.services.conversation_service import MessageThread, express_interest  # noqa: E402
from swapboard.services.feed_service import LiveFeed  # noqa: E402
from swapboard.services.notification_service import NotificationFeed, add_notification  # noqa: E402
from swapboard.viewer import Identity  # noqa: E402


def test_subscription_receives_only_matching_rows() -> None:
    hub = RealtimeHub()
    received: list[RealtimeEvent] = []
    hub.subscribe(MESSAGES, "INSERT", eq("conversation_id", 7), received.append)

    hub.publish(MESSAGES, "INSERT", new={"id": 1, "conversation_id": 7})
    hub.publish(MESSAGES, "INSERT", new={"id": 2, "conversation_id": 8})
    hub.publish(MESSAGES, "UPDATE", new={"id": 1, "conversation_id": 7, "read": True})
    hub.publish(POSTS, "INSERT", new={"id": 3, "conversation_id": 7})

    assert [event.record["id"] for event in received] == [1]


def test_wire_filters_match_like_query_filters() -> None:
    assert parse_filter("conversation_id=eq.42").matches({"conversation_id": 42})
    assert parse_filter("id=in.(1,2,3)").matches({"id": 2})
    assert parse_filter("read=is.false").matches({"read": False})
    with pytest.raises(ValueError):
        parse_filter("conversation_id")
    with pytest.raises(ValueError):
        parse_filter("conversation_id=gt.3")


def test_failing_callback_does_not_stop_other_subscribers() -> None:
    hub = RealtimeHub()
    received: list[int] = []

    def _boom(event: RealtimeEvent) -> None:
        raise RuntimeError("boom")

    hub.subscribe(POSTS, "*", None, _boom)
    hub.subscribe(POSTS, "*", None, lambda event: received.append(event.record["id"]))

    assert hub.publish(POSTS, "INSERT", new={"id": 5}) == 2
    assert received == [5]


def test_coroutine_callbacks_run_on_the_subscriber_loop() -> None:
    hub = RealtimeHub()
    received: list[int] = []

    async def _collect(event: RealtimeEvent) -> None:
        received.append(event.record["id"])

    async def _scenario() -> None:
        hub.subscribe(POSTS, "INSERT", None, _collect)
        hub.publish(POSTS, "INSERT", new={"id": 9})
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    asyncio.run(_scenario())
    assert received == [9]


def test_changing_scope_drops_the_previous_subscription() -> None:
    hub = RealtimeHub()
    received: list[int] = []
    scope = ScopedSubscription(hub, MESSAGES, "conversation_id", lambda event: received.append(event.record["id"]))

    scope.enter(1)
    hub.publish(MESSAGES, "INSERT", new={"id": 10, "conversation_id": 1})
    scope.enter(2)
    hub.publish(MESSAGES, "INSERT", new={"id": 11, "conversation_id": 1})
    hub.publish(MESSAGES, "INSERT", new={"id": 12, "conversation_id": 2})
    scope.enter(2)
    assert hub.subscriber_count == 1

    scope.exit()
    hub.publish(MESSAGES, "INSERT", new={"id": 13, "conversation_id": 2})

    assert received == [10, 12]
    assert hub.subscriber_count == 0
    assert scope.active is False


def test_live_list_upsert_replaces_duplicates_by_id() -> None:
    items = LiveList([{"id": 1, "title": "old"}], prepend=True)
    assert items.upsert({"id": 2, "title": "new"}) is True
    assert items.upsert({"id": 1, "title": "edited"}) is False
    assert [item["title"] for item in items] == ["new", "edited"]

    items.apply(RealtimeEvent(table=POSTS, type="DELETE", old={"id": 2}))
    assert [item["id"] for item in items] == [1]


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        for model in (Message, Conversation, UserNotification, Comment, PostImage, Post, Profile):
            session.execute(delete(model))
        session.commit()
    yield


@pytest.fixture
def backend() -> Iterator[BackendClient]:
    session = SessionLocal()
    yield BackendClient(session, hub=RealtimeHub())
    session.close()


def _listing(backend: BackendClient, owner: Identity, title: str = "Bread maker") -> dict:
    return backend.insert(
        POSTS,
        {
            "offer_type": "offering",
            "content_type": "item",
            "title": title,
            "description": "Works well",
            "category": "Home Goods",
            "condition": "Good",
            "contact_info": "bread@example.com",
            **owner.owner_columns(),
        },
    )[0]


def test_incoming_message_is_appended_and_marked_read(backend: BackendClient) -> None:
    owner = Identity.for_anonymous("anon-owner", display_name="Owner")
    visitor = Identity.for_anonymous("anon-visitor", display_name="Visitor")
    post = _listing(backend, owner)
    conversation = express_interest(backend, AppStorage(MemoryState()), post["id"], visitor).conversation

    thread = MessageThread(backend, owner)
    opened = thread.open(conversation.id)
    assert len(opened) == 1

    other_session = SessionLocal()
    try:
        sender = BackendClient(other_session, hub=backend.hub)
        sender.insert(
            MESSAGES,
            {
                "conversation_id": conversation.id,
                "sender_anonymous_id": visitor.anonymous_id,
                "sender_name": "Visitor",
                "content": "Can I pick it up tonight?",
            },
        )
    finally:
        other_session.close()

    messages = thread.messages.items
    assert [message.content for message in messages][-1] == "Can I pick it up tonight?"
    assert messages[-1].read is True
    stored = backend.select(MESSAGES, eq("id", messages[-1].id))[0]
    assert stored["read"] is True
    assert stored["read_by_recipient"] is True
    thread.close()


def test_own_message_echo_is_not_duplicated_or_marked(backend: BackendClient) -> None:
    owner = Identity.for_anonymous("anon-owner")
    visitor = Identity.for_anonymous("anon-visitor")
    post = _listing(backend, owner)
    conversation = express_interest(backend, AppStorage(MemoryState()), post["id"], visitor).conversation

    thread = MessageThread(backend, visitor)
    thread.open(conversation.id)
    sent = thread.send("On my way")

    assert [message.id for message in thread.messages.items].count(sent.id) == 1
    assert backend.select(MESSAGES, eq("id", sent.id))[0]["read"] is False
    thread.close()
    assert backend.hub.subscriber_count == 0


def test_message_for_another_conversation_is_ignored(backend: BackendClient) -> None:
    owner = Identity.for_anonymous("anon-owner")
    visitor = Identity.for_anonymous("anon-visitor")
    first = express_interest(backend, AppStorage(MemoryState()), _listing(backend, owner, "One")["id"], visitor).conversation
    second = express_interest(backend, AppStorage(MemoryState()), _listing(backend, owner, "Two")["id"], visitor).conversation

    thread = MessageThread(backend, owner)
    thread.open(first.id)
    thread.open(second.id)
    backend.insert(MESSAGES, {"conversation_id": first.id, "sender_anonymous_id": "anon-visitor", "content": "Hello?"})

    assert all(message.conversation_id == second.id for message in thread.messages.items)
    thread.close()


def test_comment_thread_prepends_new_comments(backend: BackendClient) -> None:
    owner = Identity.for_anonymous("anon-owner")
    post = _listing(backend, owner)
    thread = CommentThread(backend)
    thread.open(post["id"])

    thread.post(Identity.for_anonymous("anon-a", display_name="Ann"), "Is this gluten free?")
    thread.post(owner, "It makes any bread you like")

    assert [comment["content"] for comment in thread.comments.items] == [
        "It makes any bread you like",
        "Is this gluten free?",
    ]
    assert thread.comments.items[1]["user_name"] == "Ann"
    assert backend.get(POSTS, post["id"])["comments"] == 2
    thread.close()


def test_live_feed_picks_up_new_listings(backend: BackendClient) -> None:
    owner = Identity.for_anonymous("anon-owner")
    _listing(backend, owner, "Existing")
    feed = LiveFeed(backend)
    feed.open()

    _listing(backend, owner, "Fresh")

    assert [post["title"] for post in feed.view(FeedQuery())] == ["Fresh", "Existing"]
    assert [post["title"] for post in feed.view(FeedQuery(search="fresh"))] == ["Fresh"]
    feed.close()


def test_notification_feed_counts_new_unread(backend: BackendClient) -> None:
    profile = backend.insert(PROFILES, {"username": "nina", "email": "nina@example.com", "hashed_password": "x"})[0]
    feed = NotificationFeed(backend)
    feed.open(profile["id"])
    assert feed.unread_count == 0

    add_notification(backend, recipient_id=profile["id"], type_="comment", content="New comment")
    assert feed.unread_count == 1
    assert feed.items.items[0]["content"] == "New comment"

    feed.mark_all_read()
    assert feed.unread_count == 0
    assert all(item["read"] for item in feed.items.items)
    feed.close()
