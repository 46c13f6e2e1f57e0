"""Token issuance and current-user routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ...models.auth import TokenResponse
from ...models.user import User
from ...services.auth import AuthService
from ...services.canvas_service import CanvasService, get_canvas_service
from ...services.message_service import MessageService, get_message_service
from ..middleware import AuthContext, get_auth_context, get_auth_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/tokens", response_model=TokenResponse)
async def create_api_token(
    auth: AuthContext = Depends(get_auth_context),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Issue a new JWT for the authenticated user."""
    token, expires_at = auth_service.issue_token_response(auth.user_id)
    return TokenResponse(token=token, token_type="bearer", expires_at=expires_at)


@router.get("/api/me", response_model=User)
async def get_current_user(
    auth: AuthContext = Depends(get_auth_context),
    messages: MessageService = Depends(get_message_service),
    canvas: CanvasService = Depends(get_canvas_service),
):
    """Return the authenticated user with counts of what they own."""
    return User(
        user_id=auth.user_id,
        auth_method=auth.method,
        conversation_count=len(messages.list_conversations(auth.user_id)),
        node_count=len(canvas.list_nodes(auth.user_id)),
    )


__all__ = ["router"]
