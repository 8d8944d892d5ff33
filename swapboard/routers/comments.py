"""Comment routes for a listing."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..backend.client import BackendClient
from ..dependencies import get_backend, get_viewer
from ..schemas import CommentCreate, CommentListResponse, CommentResponse
from ..services import add_comment, comment_view, list_comments
from ..services.post_service import get_post
from ..viewer import Identity

router = APIRouter(prefix="/posts", tags=["comments"])


@router.get("/{post_id}/comments", response_model=CommentListResponse)
async def post_comments(
    post_id: int,
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> CommentListResponse:
    get_post(backend, post_id)
    return CommentListResponse(items=[comment_view(comment, viewer) for comment in list_comments(backend, post_id)])


@router.post("/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: int,
    payload: CommentCreate,
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> CommentResponse:
    return CommentResponse.model_validate(comment_view(add_comment(backend, post_id, viewer, payload.content), viewer))


__all__ = ["router"]
