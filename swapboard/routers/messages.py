"""Interest in listings and the viewer's conversations."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..backend.client import BackendClient
from ..dependencies import get_backend, get_storage, get_viewer
from ..local_state import AppStorage
from ..schemas import (
    ConversationListResponse,
    ConversationSummary,
    ConversationThreadResponse,
    InterestResponse,
    MessageResponse,
    MessageSendRequest,
)
from ..services import (
    express_interest,
    list_conversations,
    message_view,
    open_conversation,
    send_message,
    summarize,
)
from ..viewer import Identity

router = APIRouter(tags=["messages"])


@router.post("/posts/{post_id}/interest", response_model=InterestResponse, status_code=status.HTTP_201_CREATED)
async def show_interest(
    post_id: int,
    backend: BackendClient = Depends(get_backend),
    storage: AppStorage = Depends(get_storage),
    viewer: Identity = Depends(get_viewer),
) -> InterestResponse:
    """Notify the owner and open a conversation seeded with an opening message."""

    result = express_interest(backend, storage, post_id, viewer)
    return InterestResponse(
        conversation_id=result.conversation.id,
        created_conversation=result.created_conversation,
        notified_owner=result.notified_owner,
    )


@router.get("/messages/conversations", response_model=ConversationListResponse)
async def my_conversations(
    backend: BackendClient = Depends(get_backend),
    storage: AppStorage = Depends(get_storage),
    viewer: Identity = Depends(get_viewer),
) -> ConversationListResponse:
    return ConversationListResponse(items=list_conversations(backend, storage, viewer))


@router.get("/messages/conversations/{conversation_id}", response_model=ConversationThreadResponse)
async def conversation_thread(
    conversation_id: int,
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> ConversationThreadResponse:
    """Return the thread oldest first; messages from the other side are marked read."""

    conversation, messages = open_conversation(backend, conversation_id, viewer)
    return ConversationThreadResponse(
        conversation=ConversationSummary.model_validate(summarize(conversation, messages, viewer)),
        messages=[MessageResponse.model_validate(message_view(message, viewer)) for message in messages],
    )


@router.post(
    "/messages/conversations/{conversation_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    conversation_id: int,
    payload: MessageSendRequest,
    backend: BackendClient = Depends(get_backend),
    viewer: Identity = Depends(get_viewer),
) -> MessageResponse:
    message = send_message(backend, conversation_id, viewer, payload.content)
    return MessageResponse.model_validate(message_view(message, viewer))


__all__ = ["router"]
