"""Listing images: parallel uploads and the contiguous display order of PostImages."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from fastapi.concurrency import run_in_threadpool

from ..backend.client import BackendClient
from ..backend.filters import eq
from ..backend.object_store import object_key
from ..config import get_settings
from ..constants import POST_IMAGES, POSTS
from ..errors import StorageUploadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class UploadedImage:
    filename: str
    url: str
    path: str


@dataclass(frozen=True)
class UploadFailure:
    filename: str
    reason: str


async def _upload_one(backend: BackendClient, image: ImageUpload, bucket: str, folder: str) -> UploadedImage | UploadFailure:
    content_type = (image.content_type or "").strip().lower()
    if not content_type.startswith("image/"):
        return UploadFailure(image.filename, "Only image files can be uploaded")
    if not image.data:
        return UploadFailure(image.filename, "File is empty")

    path = object_key(image.filename, folder)
    try:
        stored = await run_in_threadpool(backend.upload_file, bucket, path, image.data, content_type)
    except StorageUploadError as exc:
        logger.warning("Upload of %s failed: %s", image.filename, exc.message)
        return UploadFailure(image.filename, exc.message)
    return UploadedImage(filename=image.filename, url=stored.url, path=stored.path)


async def upload_images(
    backend: BackendClient,
    images: Sequence[ImageUpload],
    *,
    folder: str = "posts",
    bucket: str | None = None,
) -> tuple[list[UploadedImage], list[UploadFailure]]:
    """Upload every image concurrently; one failed file never stops the others.

    Successful uploads are returned in the order the files were given.
    """

    target_bucket = bucket or get_settings().image_bucket
    results = await asyncio.gather(*(_upload_one(backend, image, target_bucket, folder) for image in images))
    uploaded = [result for result in results if isinstance(result, UploadedImage)]
    failures = [result for result in results if isinstance(result, UploadFailure)]
    return uploaded, failures


class ImageSet:
    """Ordered images of one post; every mutation renumbers ``order`` to 0..N-1."""

    def __init__(self, rows: Iterable[dict[str, Any]] = ()) -> None:
        self._rows = sorted((dict(row) for row in rows), key=lambda row: (row.get("order") or 0, row.get("id") or 0))

    @property
    def rows(self) -> list[dict[str, Any]]:
        return [dict(row) for row in self._rows]

    @property
    def urls(self) -> list[str]:
        return [row["image_url"] for row in self._rows]

    @property
    def primary_url(self) -> str | None:
        return self._rows[0]["image_url"] if self._rows else None

    def __len__(self) -> int:
        return len(self._rows)

    def renumber(self) -> list[dict[str, Any]]:
        """Assign 0..N-1 in list order and return the rows whose order changed."""

        changed = []
        for index, row in enumerate(self._rows):
            if row.get("order") != index:
                row["order"] = index
                changed.append(row)
        return changed

    def add(self, row: dict[str, Any]) -> list[dict[str, Any]]:
        self._rows.append(dict(row))
        return self.renumber()

    def remove(self, image_id: int) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        for index, row in enumerate(self._rows):
            if row.get("id") == image_id:
                removed = self._rows.pop(index)
                return removed, self.renumber()
        raise KeyError(image_id)

    def move(self, image_id: int, new_index: int) -> list[dict[str, Any]]:
        for index, row in enumerate(self._rows):
            if row.get("id") == image_id:
                self._rows.insert(max(0, min(new_index, len(self._rows) - 1)), self._rows.pop(index))
                return self.renumber()
        raise KeyError(image_id)

    def reorder(self, image_ids: Sequence[int]) -> list[dict[str, Any]]:
        by_id = {row.get("id"): row for row in self._rows}
        if sorted(image_ids) != sorted(by_id):
            raise ValueError("image_ids must list every image of the post exactly once")
        self._rows = [by_id[image_id] for image_id in image_ids]
        return self.renumber()


def load_image_set(backend: BackendClient, post_id: int) -> ImageSet:
    return ImageSet(backend.select(POST_IMAGES, eq("post_id", post_id), order="order"))


def list_post_images(backend: BackendClient, post: dict[str, Any]) -> list[str]:
    """Image URLs in display order, falling back to the single legacy ``image_url``."""

    urls = load_image_set(backend, post["id"]).urls
    if urls:
        return urls
    return [post["image_url"]] if post.get("image_url") else []


def attach_images(backend: BackendClient, post_id: int, uploaded: Sequence[UploadedImage], *, start: int = 0) -> list[dict[str, Any]]:
    if not uploaded:
        return []
    rows = [
        {"post_id": post_id, "image_url": image.url, "storage_path": image.path, "order": start + index}
        for index, image in enumerate(uploaded)
    ]
    return backend.insert(POST_IMAGES, rows)


def sync_post_images(backend: BackendClient, post_id: int, images: ImageSet, changed: Iterable[dict[str, Any]]) -> None:
    """Persist changed orders and point the post's primary image at the first one."""

    for row in changed:
        backend.update(POST_IMAGES, {"order": row["order"]}, eq("id", row["id"]))
    backend.update(POSTS, {"image_url": images.primary_url}, eq("id", post_id))


def add_images(backend: BackendClient, post_id: int, uploaded: Sequence[UploadedImage]) -> ImageSet:
    """Append freshly uploaded images after the existing ones."""

    images = load_image_set(backend, post_id)
    changed = {row["id"]: row for row in images.renumber()}
    for row in attach_images(backend, post_id, uploaded, start=len(images)):
        changed.update((item["id"], item) for item in images.add(row))
    sync_post_images(backend, post_id, images, changed.values())
    return images


def remove_image(backend: BackendClient, post_id: int, image_id: int) -> ImageSet:
    images = load_image_set(backend, post_id)
    removed, changed = images.remove(image_id)
    backend.delete(POST_IMAGES, eq("id", image_id), eq("post_id", post_id))
    sync_post_images(backend, post_id, images, changed)
    if removed.get("storage_path"):
        backend.remove_files(get_settings().image_bucket, [removed["storage_path"]])
    return images


def reorder_images(backend: BackendClient, post_id: int, image_ids: Sequence[int]) -> ImageSet:
    images = load_image_set(backend, post_id)
    changed = images.reorder(image_ids)
    sync_post_images(backend, post_id, images, changed)
    return images


def delete_post_images(backend: BackendClient, post_id: int) -> None:
    removed = backend.delete(POST_IMAGES, eq("post_id", post_id))
    paths = [row["storage_path"] for row in removed if row.get("storage_path")]
    if paths:
        backend.remove_files(get_settings().image_bucket, paths)


__all__ = [
    "ImageUpload",
    "UploadedImage",
    "UploadFailure",
    "upload_images",
    "ImageSet",
    "load_image_set",
    "list_post_images",
    "attach_images",
    "sync_post_images",
    "add_images",
    "remove_image",
    "reorder_images",
    "delete_post_images",
]
