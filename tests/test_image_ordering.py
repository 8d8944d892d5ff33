"""Tests for the contiguous display order of listing images."""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_image_ordering.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from swapboard.backend.client import BackendClient  # noqa: E402
from swapboard.backend.filters import eq  # noqa: E402
from swapboard.backend.object_store import LocalObjectStore, object_key  # noqa: E402
from swapboard.backend.realtime import RealtimeHub  # noqa: E402
from swapboard.constants import POST_IMAGES, POSTS  # noqa: E402
from swapboard.database import Base, SessionLocal, engine  # noqa: E402
from swapboard.errors import ListingValidationError, NotFoundError, OwnershipError  # noqa: E402
from swapboard.models import Comment, Conversation, Message, Post, PostImage, Profile, UserNotification  # noqa: E402
from swapboard.services.image_service import (  # noqa: E402
    ImageSet,
    ImageUpload,
    add_images,
    list_post_images,
    upload_images,
)
from swapboard.services.post_service import (  # noqa: E402
    add_listing_images,
    remove_listing_image,
    reorder_listing_images,
)
from swapboard.viewer import Identity  # noqa: E402

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
OWNER = Identity.for_anonymous("anon-owner")


def _rows(count: int) -> list[dict]:
    return [{"id": index + 1, "image_url": f"/media/{index + 1}.png", "order": index} for index in range(count)]


def test_removing_one_of_n_leaves_contiguous_order() -> None:
    images = ImageSet(_rows(5))
    removed, changed = images.remove(3)

    assert removed["id"] == 3
    assert [row["order"] for row in images.rows] == [0, 1, 2, 3]
    assert [row["id"] for row in images.rows] == [1, 2, 4, 5]
    assert [row["id"] for row in changed] == [4, 5]


def test_removing_the_first_image_promotes_the_next() -> None:
    images = ImageSet(_rows(3))
    images.remove(1)
    assert images.primary_url == "/media/2.png"


def test_gaps_from_storage_are_closed_by_renumber() -> None:
    images = ImageSet([{"id": 7, "image_url": "a", "order": 4}, {"id": 3, "image_url": "b", "order": 1}])
    assert [row["id"] for row in images.rows] == [3, 7]
    changed = images.renumber()
    assert [(row["id"], row["order"]) for row in changed] == [(3, 0), (7, 1)]


def test_added_image_lands_last_and_closes_gaps() -> None:
    images = ImageSet([{"id": 4, "image_url": "a", "order": 2}, {"id": 6, "image_url": "b", "order": 5}])
    changed = images.add({"id": 9, "image_url": "c", "order": 7})

    assert [row["id"] for row in images.rows] == [4, 6, 9]
    assert [row["order"] for row in images.rows] == [0, 1, 2]
    assert [row["id"] for row in changed] == [4, 6, 9]


def test_reorder_requires_every_image_once() -> None:
    images = ImageSet(_rows(3))
    images.reorder([3, 1, 2])
    assert [row["id"] for row in images.rows] == [3, 1, 2]
    assert [row["order"] for row in images.rows] == [0, 1, 2]
    with pytest.raises(ValueError):
        images.reorder([1, 2])
    with pytest.raises(ValueError):
        images.reorder([1, 1, 2])


def test_move_clamps_to_bounds() -> None:
    images = ImageSet(_rows(3))
    images.move(1, 10)
    assert [row["id"] for row in images.rows] == [2, 3, 1]


def test_object_keys_are_unique_and_keep_the_extension() -> None:
    first = object_key("My Photo.JPG", "posts")
    second = object_key("My Photo.JPG", "posts")
    assert first != second
    assert first.startswith("posts/")
    assert first.endswith(".jpg")


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
def media_root(tmp_path: Path) -> Path:
    return tmp_path / "media"


@pytest.fixture
def backend(media_root: Path) -> Iterator[BackendClient]:
    session = SessionLocal()
    yield BackendClient(session, store=LocalObjectStore(media_root, "/media"), hub=RealtimeHub())
    session.close()


@pytest.fixture
def post(backend: BackendClient) -> dict:
    return backend.insert(
        POSTS,
        {
            "offer_type": "offering",
            "content_type": "item",
            "title": "Bookshelf",
            "description": "Pine, five shelves",
            "category": "Furniture",
            "condition": "Fair",
            "contact_info": "shelf@example.com",
            **OWNER.owner_columns(),
        },
    )[0]


def _uploads(*names: str) -> list[ImageUpload]:
    return [ImageUpload(name, "image/png", PNG) for name in names]


def test_add_then_remove_keeps_stored_order_contiguous(backend: BackendClient, post: dict, media_root: Path) -> None:
    images, failures = asyncio.run(add_listing_images(backend, post["id"], OWNER, _uploads("a.png", "b.png", "c.png", "d.png")))
    assert failures == []
    assert [row["order"] for row in images.rows] == [0, 1, 2, 3]
    original = [row["id"] for row in images.rows]

    removed_path = backend.get(POST_IMAGES, original[1])["storage_path"]
    remaining = remove_listing_image(backend, post["id"], original[1], OWNER)

    stored = backend.select(POST_IMAGES, eq("post_id", post["id"]), order="order")
    assert [row["order"] for row in stored] == [0, 1, 2]
    assert [row["id"] for row in stored] == [original[0], original[2], original[3]]
    assert [row["id"] for row in remaining.rows] == [row["id"] for row in stored]
    assert not (media_root / "post-images" / removed_path).exists()


def test_primary_image_follows_order_zero(backend: BackendClient, post: dict) -> None:
    images, _ = asyncio.run(add_listing_images(backend, post["id"], OWNER, _uploads("a.png", "b.png")))
    first, second = [row["id"] for row in images.rows]
    assert backend.get(POSTS, post["id"])["image_url"] == images.rows[0]["image_url"]

    reordered = reorder_listing_images(backend, post["id"], [second, first], OWNER)
    assert backend.get(POSTS, post["id"])["image_url"] == reordered.rows[0]["image_url"]
    assert [row["id"] for row in backend.select(POST_IMAGES, order="order")] == [second, first]

    remove_listing_image(backend, post["id"], second, OWNER)
    remove_listing_image(backend, post["id"], first, OWNER)
    assert backend.get(POSTS, post["id"])["image_url"] is None


def test_appended_images_continue_the_sequence(backend: BackendClient, post: dict) -> None:
    asyncio.run(add_listing_images(backend, post["id"], OWNER, _uploads("a.png", "b.png")))
    images, _ = asyncio.run(add_listing_images(backend, post["id"], OWNER, _uploads("c.png")))
    assert [row["order"] for row in images.rows] == [0, 1, 2]
    assert len(list_post_images(backend, backend.get(POSTS, post["id"]))) == 3


def test_image_limit_and_ownership_are_enforced(backend: BackendClient, post: dict) -> None:
    with pytest.raises(ListingValidationError):
        asyncio.run(add_listing_images(backend, post["id"], OWNER, _uploads(*[f"{n}.png" for n in range(6)])))
    with pytest.raises(OwnershipError):
        asyncio.run(add_listing_images(backend, post["id"], Identity.for_anonymous("anon-other"), _uploads("a.png")))
    assert backend.count(POST_IMAGES) == 0


def test_bad_image_requests_map_to_domain_errors(backend: BackendClient, post: dict) -> None:
    images, _ = asyncio.run(add_listing_images(backend, post["id"], OWNER, _uploads("a.png", "b.png")))
    with pytest.raises(NotFoundError):
        remove_listing_image(backend, post["id"], 9999, OWNER)
    with pytest.raises(ListingValidationError):
        reorder_listing_images(backend, post["id"], [images.rows[0]["id"]], OWNER)


def test_legacy_single_image_is_still_listed(backend: BackendClient, post: dict) -> None:
    backend.update(POSTS, {"image_url": "https://cdn.example.com/legacy.png"}, eq("id", post["id"]))
    assert list_post_images(backend, backend.get(POSTS, post["id"])) == ["https://cdn.example.com/legacy.png"]


def test_adding_after_stored_gaps_renumbers_everything(backend: BackendClient, post: dict) -> None:
    backend.insert(
        POST_IMAGES,
        [
            {"post_id": post["id"], "image_url": "/media/old-1.png", "order": 3},
            {"post_id": post["id"], "image_url": "/media/old-2.png", "order": 8},
        ],
    )
    uploaded, _ = asyncio.run(upload_images(backend, _uploads("new.png")))

    images = add_images(backend, post["id"], uploaded)

    stored = backend.select(POST_IMAGES, eq("post_id", post["id"]), order="order")
    assert [row["order"] for row in stored] == [0, 1, 2]
    assert [row["image_url"] for row in stored][:2] == ["/media/old-1.png", "/media/old-2.png"]
    assert [row["id"] for row in images.rows] == [row["id"] for row in stored]
    assert backend.get(POSTS, post["id"])["image_url"] == "/media/old-1.png"
