"""Tests for listing composition, owner-only edits and the my-posts view."""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_composer.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from swapboard.backend.client import BackendClient  # noqa: E402
from swapboard.backend.filters import eq  # noqa: E402
from swapboard.backend.object_store import LocalObjectStore  # noqa: E402
from swapboard.backend.realtime import RealtimeHub  # noqa: E402
from swapboard.constants import COMMENTS, POST_IMAGES, POSTS, PROFILES  # noqa: E402
from swapboard.database import Base, SessionLocal, engine  # noqa: E402
from swapboard.device import DeviceSession  # noqa: E402
from swapboard.errors import ListingValidationError, OwnershipError, StorageUploadError  # noqa: E402
from swapboard.local_state import AppStorage, MemoryState, open_state  # noqa: E402
from swapboard.models import Comment, Conversation, Message, Post, PostImage, Profile, UserNotification  # noqa: E402
from swapboard.schemas.local import EditIntent  # noqa: E402
from swapboard.schemas.posts import ListingDraft, ListingUpdate  # noqa: E402
from swapboard.services.composer import build_post_row, submit_listing, validate_listing  # noqa: E402
from swapboard.services.image_service import ImageUpload  # noqa: E402
from swapboard.services.post_service import (  # noqa: E402
    begin_edit,
    delete_listing,
    get_post_detail,
    list_my_posts,
    load_for_edit,
    update_listing,
)
from swapboard.viewer import Identity  # noqa: E402

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


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
def backend(tmp_path: Path) -> Iterator[BackendClient]:
    session = SessionLocal()
    yield BackendClient(session, store=LocalObjectStore(tmp_path / "media", "/media"), hub=RealtimeHub())
    session.close()


@pytest.fixture
def storage() -> AppStorage:
    return AppStorage(MemoryState())


def _item_draft(**overrides) -> ListingDraft:
    fields = {
        "offer_type": "offering",
        "content_type": "item",
        "title": "Cordless drill",
        "description": "18V with two batteries",
        "contact_info": "drill@example.com",
        "item_category": "Tools",
        "condition": "Good",
    }
    fields.update(overrides)
    return ListingDraft(**fields)


def _service_draft(**overrides) -> ListingDraft:
    fields = {
        "offer_type": "offering",
        "content_type": "service",
        "title": "Maths tutoring",
        "description": "High school level",
        "contact_info": "555-0100",
        "service_category": "Education & Tutoring",
        "availability": "Weekday evenings",
        "rate_type": "trade",
    }
    fields.update(overrides)
    return ListingDraft(**fields)


def test_offering_item_without_condition_is_blocked_before_any_insert(
    backend: BackendClient, storage: AppStorage, monkeypatch: pytest.MonkeyPatch
) -> None:
    inserts: list[str] = []
    original_insert = backend.insert

    def _spy(table, rows):
        inserts.append(table)
        return original_insert(table, rows)

    monkeypatch.setattr(backend, "insert", _spy)
    owner = Identity.for_anonymous("anon-1")

    with pytest.raises(ListingValidationError) as excinfo:
        asyncio.run(submit_listing(backend, storage, _item_draft(condition=None), owner))

    assert "condition" in excinfo.value.errors
    assert inserts == []
    assert backend.count(POSTS) == 0


def test_requesting_item_does_not_need_condition() -> None:
    assert validate_listing(_item_draft(offer_type="requesting", condition=None)) == {}


def test_hourly_service_without_rate_amount_is_blocked() -> None:
    errors = validate_listing(_service_draft(rate_type="hourly", rate_amount=None))
    assert errors == {"rate_amount": "Rate amount is required"}


def test_service_needs_category_and_availability() -> None:
    errors = validate_listing(_service_draft(service_category="", availability="  "))
    assert set(errors) == {"service_category", "availability"}


def test_common_fields_are_always_required() -> None:
    errors = validate_listing(ListingDraft(content_type="item", offer_type="requesting", item_category="Tools"))
    assert set(errors) == {"title", "description", "contact_info"}


def test_too_many_images_is_a_validation_error() -> None:
    assert "images" in validate_listing(_item_draft(), image_count=6, max_images=5)


def test_trade_service_row_drops_rate_amount() -> None:
    row = build_post_row(_service_draft(rate_amount="20"), Identity.for_anonymous("anon-1"))
    assert row["rate_type"] == "trade"
    assert row["rate_amount"] is None
    assert row["category"] == "Education & Tutoring"
    assert row["is_anonymous"] is True
    assert row["anonymous_id"] == "anon-1"
    assert row["user_id"] is None


def test_submission_creates_post_then_ordered_images(backend: BackendClient, storage: AppStorage) -> None:
    owner = Identity.for_anonymous("anon-1")
    storage.save_draft_post(_item_draft())
    images = [
        ImageUpload("front.png", "image/png", PNG),
        ImageUpload("notes.txt", "text/plain", b"not an image"),
        ImageUpload("back.png", "image/png", PNG),
    ]

    submission = asyncio.run(submit_listing(backend, storage, _item_draft(), owner, images))

    post = submission.post
    assert [failure.filename for failure in submission.failed_uploads] == ["notes.txt"]
    rows = backend.select(POST_IMAGES, order="order")
    assert [row["order"] for row in rows] == [0, 1]
    assert all(row["post_id"] == post["id"] for row in rows)
    assert post["image_url"] == rows[0]["image_url"]
    assert rows[0]["image_url"].startswith("/media/post-images/posts/")

    assert [ref.id for ref in storage.get_user_posts()] == [post["id"]]
    assert storage.get_draft_post() is None


def test_member_listing_is_not_tracked_locally(backend: BackendClient, storage: AppStorage) -> None:
    profile = backend.insert(PROFILES, {"username": "sam", "email": "sam@example.com", "hashed_password": "x"})[0]
    owner = Identity.for_user(profile["id"])

    submission = asyncio.run(submit_listing(backend, storage, _item_draft(), owner))

    assert submission.post["user_id"] == profile["id"]
    assert submission.post["is_anonymous"] is False
    assert storage.get_user_posts() == []


def _create(backend: BackendClient, storage: AppStorage, owner: Identity, **overrides) -> dict:
    return asyncio.run(submit_listing(backend, storage, _item_draft(**overrides), owner)).post


def test_only_the_owner_can_update(backend: BackendClient, storage: AppStorage) -> None:
    owner = Identity.for_anonymous("anon-owner")
    post = _create(backend, storage, owner)

    with pytest.raises(OwnershipError):
        update_listing(backend, AppStorage(MemoryState()), post["id"], Identity.for_anonymous("anon-other"), ListingUpdate(title="Mine now"))

    updated = update_listing(backend, storage, post["id"], owner, ListingUpdate(title="Drill and bits"))
    assert updated["title"] == "Drill and bits"
    assert storage.get_user_posts()[0].title == "Drill and bits"


def test_update_is_revalidated(backend: BackendClient, storage: AppStorage) -> None:
    owner = Identity.for_anonymous("anon-owner")
    post = _create(backend, storage, owner)

    with pytest.raises(ListingValidationError) as excinfo:
        update_listing(backend, storage, post["id"], owner, ListingUpdate(condition=""))
    assert "condition" in excinfo.value.errors
    assert backend.get(POSTS, post["id"])["condition"] == "Good"


def test_edit_intent_for_another_identity_is_refused(backend: BackendClient, storage: AppStorage) -> None:
    owner = Identity.for_anonymous("anon-owner")
    post = _create(backend, storage, owner)
    begin_edit(backend, storage, post["id"], owner)
    assert load_for_edit(backend, storage, post["id"], owner)["id"] == post["id"]

    storage.set_edit_intent(EditIntent(id=post["id"], anonymous_id="anon-intruder", title=post["title"]))
    with pytest.raises(OwnershipError):
        load_for_edit(backend, storage, post["id"], Identity.for_anonymous("anon-intruder"))
    assert storage.get_edit_intent() is None


def test_delete_removes_images_comments_and_local_ref(backend: BackendClient, storage: AppStorage) -> None:
    owner = Identity.for_anonymous("anon-owner")
    post = asyncio.run(
        submit_listing(backend, storage, _item_draft(), owner, [ImageUpload("a.png", "image/png", PNG)])
    ).post
    backend.insert(COMMENTS, {"post_id": post["id"], "content": "Still available?", "anonymous_id": "anon-x"})

    with pytest.raises(OwnershipError):
        delete_listing(backend, storage, post["id"], Identity.for_anonymous("anon-other"))

    delete_listing(backend, storage, post["id"], owner)
    assert backend.get(POSTS, post["id"]) is None
    assert backend.count(POST_IMAGES) == 0
    assert backend.count(COMMENTS) == 0
    assert storage.get_user_posts() == []


def test_my_posts_prunes_refs_to_missing_posts(backend: BackendClient, storage: AppStorage) -> None:
    owner = Identity.for_anonymous("anon-owner")
    first = _create(backend, storage, owner, title="First")
    second = _create(backend, storage, owner, title="Second")
    _create(backend, AppStorage(MemoryState()), Identity.for_anonymous("anon-other"), title="Not mine")
    backend.delete(POSTS, eq("id", second["id"]))

    posts = list_my_posts(backend, storage, owner)

    assert [post["id"] for post in posts] == [first["id"]]
    assert [ref.id for ref in storage.get_user_posts()] == [first["id"]]


def test_detail_includes_share_links_and_ownership(backend: BackendClient, storage: AppStorage) -> None:
    owner = Identity.for_anonymous("anon-owner")
    post = _create(backend, storage, owner)

    detail = get_post_detail(backend, post["id"], owner)
    assert detail["is_owner"] is True
    assert detail["share"]["url"].endswith(f"/post/{post['id']}")
    assert detail["share"]["mailto"].startswith("mailto:?subject=")
    assert get_post_detail(backend, post["id"], Identity.for_anonymous("anon-other"))["is_owner"] is False


def test_device_session_keeps_anonymous_listings_across_restarts(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    with DeviceSession(state=open_state(path), hub=RealtimeHub()) as device:
        viewer = device.viewer
        post = asyncio.run(submit_listing(device.backend, device.storage, _item_draft(), viewer)).post

    with DeviceSession(state=open_state(path), hub=RealtimeHub()) as device:
        assert device.viewer == viewer
        assert [item["id"] for item in list_my_posts(device.backend, device.storage, device.viewer)] == [post["id"]]
        assert device.storage.storage_info().is_persistent is True

        profile = device.backend.insert(
            PROFILES, {"username": "sam", "email": "sam@example.com", "hashed_password": "x"}
        )[0]
        device.sign_in(profile["id"])
        assert device.viewer.user_id == profile["id"]
        assert device.viewer.anonymous_id is None
        device.sign_out()
        assert device.viewer == viewer


def test_failed_upload_of_one_image_does_not_stop_the_others(
    backend: BackendClient, storage: AppStorage, monkeypatch: pytest.MonkeyPatch
) -> None:
    broken = PNG + b"\x01"
    original_upload = backend.upload_file

    def _flaky_upload(bucket, path, data, content_type):
        if data == broken:
            raise StorageUploadError("Bucket is read-only")
        return original_upload(bucket, path, data, content_type)

    monkeypatch.setattr(backend, "upload_file", _flaky_upload)
    images = [
        ImageUpload("front.png", "image/png", PNG),
        ImageUpload("side.png", "image/png", broken),
        ImageUpload("back.png", "image/png", PNG),
    ]

    submission = asyncio.run(submit_listing(backend, storage, _item_draft(), Identity.for_anonymous("anon-1"), images))

    assert [(failure.filename, failure.reason) for failure in submission.failed_uploads] == [
        ("side.png", "Bucket is read-only")
    ]
    assert backend.get(POSTS, submission.post["id"]) is not None
    rows = backend.select(POST_IMAGES, order="order")
    assert [row["order"] for row in rows] == [0, 1]
    assert submission.post["image_url"] == rows[0]["image_url"]


def test_switching_an_item_to_requesting_clears_offer_only_fields(backend: BackendClient, storage: AppStorage) -> None:
    owner = Identity.for_anonymous("anon-owner")
    post = _create(backend, storage, owner, looking_for="A ladder")

    updated = update_listing(
        backend, storage, post["id"], owner, ListingUpdate(offer_type="requesting", can_offer="Homemade jam")
    )
    assert updated["offer_type"] == "requesting"
    assert updated["condition"] is None
    assert updated["looking_for"] is None
    assert updated["can_offer"] == "Homemade jam"

    updated = update_listing(
        backend, storage, post["id"], owner, ListingUpdate(offer_type="offering", condition="Like New")
    )
    assert updated["condition"] == "Like New"
    assert updated["can_offer"] is None


def test_switching_to_trade_rate_clears_the_amount(backend: BackendClient, storage: AppStorage) -> None:
    owner = Identity.for_anonymous("anon-owner")
    post = asyncio.run(
        submit_listing(backend, storage, _service_draft(rate_type="hourly", rate_amount="25"), owner)
    ).post
    assert post["rate_amount"] == "25"

    updated = update_listing(backend, storage, post["id"], owner, ListingUpdate(rate_type="trade"))
    assert updated["rate_type"] == "trade"
    assert updated["rate_amount"] is None
    assert updated["category"] == "Education & Tutoring"
