"""Conversation and chat message models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

MessageRole = Literal["user", "assistant"]


class Conversation(BaseModel):
    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime


class ConversationCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=256)


class Message(BaseModel):
    """A chat message; ownership is inherited from its conversation."""

    id: str
    conversation_id: str
    role: MessageRole
    content: str
    has_embedding: bool = False
    created_at: datetime


class MessageCreate(BaseModel):
    role: MessageRole = "user"
    content: str = Field(..., min_length=1, max_length=100_000)


__all__ = ["MessageRole", "Conversation", "ConversationCreate", "Message", "MessageCreate"]
