"""Landing page data and the static about page."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..backend.client import BackendClient
from ..config import get_settings
from ..constants import CONDITIONS, EXPERIENCE_LEVELS, ITEM_CATEGORIES, SERVICE_CATEGORIES
from ..dependencies import get_backend, get_viewer
from ..schemas import HomeResponse
from ..services import home_summary, owner_view
from ..viewer import Identity

router = APIRouter(tags=["pages"])


@router.get("/", response_model=HomeResponse)
async def home(
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> HomeResponse:
    summary = home_summary(backend)
    summary["latest"] = [owner_view(post, viewer) for post in summary["latest"]]
    return HomeResponse.model_validate(summary)


@router.get("/about")
async def about() -> dict[str, Any]:
    settings = get_settings()
    return {
        "name": settings.app_name,
        "version": settings.api_version,
        "description": "Trade items and services with your neighbours, signed in or anonymously.",
        "item_categories": list(ITEM_CATEGORIES),
        "service_categories": list(SERVICE_CATEGORIES),
        "conditions": list(CONDITIONS),
        "experience_levels": list(EXPERIENCE_LEVELS),
    }


__all__ = ["router"]
