"""Listing routes: feed, composer submission, detail, owner edits and images."""
from __future__ import annotations

from enum import StrEnum
from typing import TypeVar

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError

from ..backend.client import BackendClient
from ..constants import ContentType, OfferType, SortOrder
from ..dependencies import get_backend, get_storage, get_viewer
from ..errors import InputValidationError
from ..local_state import AppStorage
from ..schemas import (
    FeedQuery,
    ImageOrderRequest,
    ImageSetResponse,
    ListingDraft,
    ListingSubmitResponse,
    ListingUpdate,
    PostDetailResponse,
    PostFeedResponse,
    PostResponse,
    UploadFailureResponse,
)
from ..services import (
    ImageSet,
    ImageUpload,
    UploadFailure,
    add_listing_images,
    begin_edit,
    delete_listing,
    fetch_feed,
    get_post_detail,
    list_my_posts,
    load_for_edit,
    owner_view,
    remove_listing_image,
    reorder_listing_images,
    submit_listing,
    update_listing,
)
from ..viewer import Identity

router = APIRouter(prefix="/posts", tags=["posts"])

Choice = TypeVar("Choice", bound=StrEnum)

# The feed sends "all" when a filter is switched off.
ALL_CHOICES = "all"


async def _read_uploads(files: list[UploadFile] | None) -> list[ImageUpload]:
    uploads = []
    for upload in files or []:
        uploads.append(
            ImageUpload(
                filename=upload.filename or "upload",
                content_type=upload.content_type or "",
                data=await upload.read(),
            )
        )
    return uploads


def _failures(items: list[UploadFailure]) -> list[UploadFailureResponse]:
    return [UploadFailureResponse(filename=item.filename, reason=item.reason) for item in items]


def _image_set_response(post_id: int, images: ImageSet, failures: list[UploadFailure] | None = None) -> ImageSetResponse:
    return ImageSetResponse(
        post_id=post_id,
        image_url=images.primary_url,
        images=images.rows,
        failed_uploads=_failures(failures or []),
    )


def _choice(kind: type[Choice], value: str | None, field: str) -> Choice | None:
    text = (value or "").strip().lower()
    if not text or text == ALL_CHOICES:
        return None
    try:
        return kind(text)
    except ValueError as exc:
        allowed = ", ".join([ALL_CHOICES, *(member.value for member in kind)])
        raise InputValidationError({field: f"Must be one of: {allowed}"}) from exc


def _parse_listing(raw: str) -> ListingDraft:
    try:
        return ListingDraft.model_validate_json(raw)
    except ValidationError as exc:
        errors = {".".join(str(part) for part in error["loc"]) or "listing": error["msg"] for error in exc.errors()}
        raise InputValidationError(errors) from exc


@router.get("/feed", response_model=PostFeedResponse)
async def feed(
    offer_type: str | None = Query(None, description="offering, requesting or all"),
    search: str = Query(""),
    category: str = Query(""),
    content_type: str | None = Query(None, description="item, service or all"),
    sort: SortOrder = Query(SortOrder.NEWEST),
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> PostFeedResponse:
    query = FeedQuery(
        offer_type=_choice(OfferType, offer_type, "offer_type"),
        search=search,
        category=category,
        content_type=_choice(ContentType, content_type, "content_type"),
        sort=sort,
    )
    return PostFeedResponse(items=[owner_view(post, viewer) for post in fetch_feed(backend, query)])


@router.post("", response_model=ListingSubmitResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    listing: str = Form(..., description="Composer fields as a JSON object"),
    files: list[UploadFile] | None = File(None),
    backend: BackendClient = Depends(get_backend),
    storage: AppStorage = Depends(get_storage),
    viewer: Identity = Depends(get_viewer),
) -> ListingSubmitResponse:
    """Create a listing from ``multipart/form-data``.

    ``listing`` carries the composer fields as JSON and ``files`` any number
    of images, the first of which becomes the listing's primary image.
    """

    draft = _parse_listing(listing)
    submission = await submit_listing(backend, storage, draft, viewer, await _read_uploads(files))
    return ListingSubmitResponse(
        post=owner_view(submission.post, viewer),
        images=submission.images,
        failed_uploads=_failures(submission.failed_uploads),
    )


@router.get("/mine", response_model=PostFeedResponse)
async def my_listings(
    backend: BackendClient = Depends(get_backend),
    storage: AppStorage = Depends(get_storage),
    viewer: Identity = Depends(get_viewer),
) -> PostFeedResponse:
    return PostFeedResponse(items=[owner_view(post, viewer) for post in list_my_posts(backend, storage, viewer)])


@router.get("/{post_id}", response_model=PostDetailResponse)
async def listing_detail(
    post_id: int,
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> PostDetailResponse:
    return PostDetailResponse.model_validate(get_post_detail(backend, post_id, viewer))


@router.post("/{post_id}/edit", response_model=PostResponse)
async def start_edit(
    post_id: int,
    backend: BackendClient = Depends(get_backend),
    storage: AppStorage = Depends(get_storage),
    viewer: Identity = Depends(get_viewer),
) -> PostResponse:
    begin_edit(backend, storage, post_id, viewer)
    return PostResponse.model_validate(owner_view(load_for_edit(backend, storage, post_id, viewer), viewer))


@router.patch("/{post_id}", response_model=PostResponse)
async def edit_listing(
    post_id: int,
    changes: ListingUpdate,
    backend: BackendClient = Depends(get_backend),
    storage: AppStorage = Depends(get_storage),
    viewer: Identity = Depends(get_viewer),
) -> PostResponse:
    return PostResponse.model_validate(owner_view(update_listing(backend, storage, post_id, viewer, changes), viewer))


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_listing(
    post_id: int,
    backend: BackendClient = Depends(get_backend),
    storage: AppStorage = Depends(get_storage),
    viewer: Identity = Depends(get_viewer),
) -> None:
    delete_listing(backend, storage, post_id, viewer)


@router.post("/{post_id}/images", response_model=ImageSetResponse, status_code=status.HTTP_201_CREATED)
async def upload_listing_images(
    post_id: int,
    files: list[UploadFile] = File(...),
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> ImageSetResponse:
    images, failures = await add_listing_images(backend, post_id, viewer, await _read_uploads(files))
    return _image_set_response(post_id, images, failures)


@router.delete("/{post_id}/images/{image_id}", response_model=ImageSetResponse)
async def delete_listing_image(
    post_id: int,
    image_id: int,
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> ImageSetResponse:
    return _image_set_response(post_id, remove_listing_image(backend, post_id, image_id, viewer))


@router.put("/{post_id}/images/order", response_model=ImageSetResponse)
async def order_listing_images(
    post_id: int,
    payload: ImageOrderRequest,
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> ImageSetResponse:
    return _image_set_response(post_id, reorder_listing_images(backend, post_id, payload.image_ids, viewer))


__all__ = ["router"]
