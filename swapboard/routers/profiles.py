"""Profile routes: the viewer's own profile and public member pages."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..backend.client import BackendClient
from ..dependencies import get_backend, get_optional_user, get_resolver, get_viewer
from ..schemas import (
    AnonymousProfileResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    PublicProfileResponse,
    ViewerProfileResponse,
)
from ..services import (
    anonymous_profile_view,
    get_public_profile,
    owner_view,
    rename_anonymous_profile,
    update_profile,
)
from ..services.identity import AnonymousIdentityResolver
from ..viewer import Identity

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ViewerProfileResponse)
async def my_profile(
    viewer: Identity = Depends(get_viewer),
    current_user: dict[str, Any] | None = Depends(get_optional_user),
    resolver: AnonymousIdentityResolver = Depends(get_resolver),
) -> ViewerProfileResponse:
    if viewer.is_authenticated and current_user is not None:
        return ViewerProfileResponse(profile=ProfileResponse.model_validate(current_user))
    return ViewerProfileResponse(anonymous=AnonymousProfileResponse(**anonymous_profile_view(resolver)))


@router.patch("/me", response_model=ViewerProfileResponse)
async def edit_my_profile(
    changes: ProfileUpdateRequest,
    viewer: Identity = Depends(get_viewer),
    backend: BackendClient = Depends(get_backend),
    resolver: AnonymousIdentityResolver = Depends(get_resolver),
) -> ViewerProfileResponse:
    """Members update their profile row; anonymous viewers may only rename themselves."""

    if viewer.is_authenticated:
        profile = update_profile(backend, viewer.user_id, changes)
        return ViewerProfileResponse(profile=ProfileResponse.model_validate(profile))
    view = anonymous_profile_view(resolver)
    if changes.display_name:
        view = rename_anonymous_profile(resolver, changes.display_name)
    return ViewerProfileResponse(anonymous=AnonymousProfileResponse(**view))


@router.get("/{username}", response_model=PublicProfileResponse)
async def public_profile(
    username: str,
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> PublicProfileResponse:
    page = get_public_profile(backend, username)
    for section in ("item_posts", "service_posts"):
        page[section] = [owner_view(post, viewer) for post in page[section]]
    return PublicProfileResponse.model_validate(page)


__all__ = ["router"]
