"""Notification routes for signed-in members."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from ..backend.client import BackendClient
from ..dependencies import get_backend, get_current_user
from ..schemas import (
    NotificationListResponse,
    NotificationMarkReadRequest,
    NotificationSummaryResponse,
)
from ..services import count_unread_notifications, list_notifications, mark_all_read, mark_read
from ..services.notification_service import DEFAULT_LIMIT

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def my_notifications(
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=100),
    current_user: dict[str, Any] = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
) -> NotificationListResponse:
    return NotificationListResponse(items=list_notifications(backend, current_user["id"], limit=limit))


@router.get("/summary", response_model=NotificationSummaryResponse)
async def notification_summary(
    current_user: dict[str, Any] = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
) -> NotificationSummaryResponse:
    return NotificationSummaryResponse(unread_count=count_unread_notifications(backend, current_user["id"]))


@router.post("/mark-read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notifications_read(
    payload: NotificationMarkReadRequest | None = None,
    current_user: dict[str, Any] = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
) -> None:
    """Mark the listed notifications read, or all of them when no ids are sent."""

    if payload is not None and payload.ids:
        mark_read(backend, current_user["id"], payload.ids)
    else:
        mark_all_read(backend, current_user["id"])


__all__ = ["router"]
