"""HTTP API routes for conversations and their messages."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..middleware import AuthContext, get_auth_context
from ...models.embedding import Collection, EmbedResponse
from ...models.message import Conversation, ConversationCreate, Message, MessageCreate
from ...services.embedding_queue import EmbeddingQueue, get_embedding_queue
from ...services.message_service import MessageService, get_message_service

router = APIRouter(prefix="/api", tags=["conversations"])


def _not_found(kind: str, identifier: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "not_found", "message": f"{kind} '{identifier}' not found"},
    )


@router.get("/conversations", response_model=List[Conversation])
async def list_conversations(
    auth: AuthContext = Depends(get_auth_context),
    service: MessageService = Depends(get_message_service),
):
    return service.list_conversations(auth.user_id)


@router.post(
    "/conversations", response_model=Conversation, status_code=status.HTTP_201_CREATED
)
async def create_conversation(
    payload: ConversationCreate,
    auth: AuthContext = Depends(get_auth_context),
    service: MessageService = Depends(get_message_service),
):
    return service.create_conversation(auth.user_id, payload.title)


@router.get("/conversations/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: MessageService = Depends(get_message_service),
):
    conversation = service.get_conversation(conversation_id, auth.user_id)
    if conversation is None:
        raise _not_found("Conversation", conversation_id)
    return conversation


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: MessageService = Depends(get_message_service),
):
    if not service.delete_conversation(conversation_id, auth.user_id):
        raise _not_found("Conversation", conversation_id)


@router.get("/conversations/{conversation_id}/messages", response_model=List[Message])
async def list_messages(
    conversation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: MessageService = Depends(get_message_service),
):
    if service.get_conversation(conversation_id, auth.user_id) is None:
        raise _not_found("Conversation", conversation_id)
    return service.list_messages(conversation_id, auth.user_id)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: str,
    payload: MessageCreate,
    auth: AuthContext = Depends(get_auth_context),
    service: MessageService = Depends(get_message_service),
):
    """Store a message; its embedding is refreshed in the background."""
    message = service.send_message(
        conversation_id, auth.user_id, payload.content, role=payload.role
    )
    if message is None:
        raise _not_found("Conversation", conversation_id)
    return message


@router.get("/messages/{message_id}", response_model=Message)
async def get_message(
    message_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: MessageService = Depends(get_message_service),
):
    message = service.get_message(message_id, auth.user_id)
    if message is None:
        raise _not_found("Message", message_id)
    return message


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: MessageService = Depends(get_message_service),
):
    if not service.delete_message(message_id, auth.user_id):
        raise _not_found("Message", message_id)


@router.post("/messages/{message_id}/embed", response_model=EmbedResponse)
async def embed_message(
    message_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: MessageService = Depends(get_message_service),
    queue: EmbeddingQueue = Depends(get_embedding_queue),
):
    message = service.get_message(message_id, auth.user_id)
    if message is None:
        raise _not_found("Message", message_id)
    stored = await queue.embed_now(Collection.MESSAGES, message.id, message.content)
    return EmbedResponse(success=stored)


__all__ = ["router"]
