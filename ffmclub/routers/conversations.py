import logging
from typing import List

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from ..errors import NotFoundError, ServiceError
from ..models.conversation import (
    Conversation,
    ConversationCreateRequest,
    ConversationCreateResponse,
    ConversationDocument,
    ConversationListResponse,
    MarkReadResponse,
    Message,
    MessageCreateRequest,
    MessageListResponse,
    MessageResponse,
    UnreadCountResponse,
)
from ..services.conversation_service import ConversationService, get_conversation_service
from ..services.identity_service import LocalIdentityProvider, get_identity_provider
from .deps import require_current_user

LOGGER = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/conversations", tags=["conversations"])


async def _participant_conversation(
    service: ConversationService, conversation_id: str, user_id: str
) -> ConversationDocument:
    conversation = await service.get_conversation(conversation_id)
    if user_id not in conversation.participants:
        # Do not reveal conversations the caller is not part of
        raise NotFoundError(f"conversation '{conversation_id}' not found")
    return conversation


@router.post("", response_model=ConversationCreateResponse)
async def open_conversation(
    body: ConversationCreateRequest,
    user_id: str = Depends(require_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    conversation_id = await service.get_or_create_conversation(user_id, body.participant_id)
    return ConversationCreateResponse(conversation_id=conversation_id)


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    user_id: str = Depends(require_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    docs = await service.list_conversations_for_user(user_id)
    return ConversationListResponse(conversations=[Conversation.from_document(d) for d in docs])


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user_id: str = Depends(require_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    return UnreadCountResponse(count=await service.count_unread_for_user(user_id))


@router.get("/{conversation_id}/messages", response_model=MessageListResponse)
async def list_messages(
    conversation_id: str,
    user_id: str = Depends(require_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    await _participant_conversation(service, conversation_id, user_id)
    return MessageListResponse(messages=await service.list_messages(conversation_id))


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: str,
    body: MessageCreateRequest,
    user_id: str = Depends(require_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    conversation = await _participant_conversation(service, conversation_id, user_id)
    recipient_id = body.recipient_id
    if not recipient_id:
        others = [p for p in conversation.participants if p != user_id]
        recipient_id = others[0] if others else user_id
    message = await service.send_message(conversation_id, user_id, recipient_id, body.text)
    return MessageResponse(message=message)


@router.post("/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_read(
    conversation_id: str,
    user_id: str = Depends(require_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    await _participant_conversation(service, conversation_id, user_id)
    updated = await service.mark_messages_as_read(conversation_id, user_id)
    return MarkReadResponse(updated=updated)


@router.websocket("/{conversation_id}/ws")
async def stream_messages(
    websocket: WebSocket,
    conversation_id: str,
    token: str = Query(default=""),
    identity: LocalIdentityProvider = Depends(get_identity_provider),
    service: ConversationService = Depends(get_conversation_service),
):
    """Push the full ordered message list on connect and after every change."""

    try:
        user_id = await identity.verify_token(token)
        await _participant_conversation(service, conversation_id, user_id)
    except ServiceError as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)
        return

    await websocket.accept()

    async def _push(messages: List[Message]) -> None:
        await websocket.send_json({"messages": [m.model_dump(by_alias=True) for m in messages]})

    subscription = await service.subscribe_to_messages(conversation_id, _push)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        LOGGER.debug("Message stream closed for %s", conversation_id)
    finally:
        subscription.cancel()


__all__ = ["router"]
