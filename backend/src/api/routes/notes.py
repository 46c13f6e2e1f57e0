"""HTTP API routes for wiki-link navigation and note backlinks."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..middleware import AuthContext, get_auth_context
from ...models.canvas import CanvasNode
from ...models.wikilink import WikiLinkOpenRequest, WikiLinkResolution, WikiLinkSuggestions
from ...services.backlinks import BacklinkResolver, get_backlink_resolver
from ...services.canvas_service import CanvasService, get_canvas_service
from ...services.wikilinks import MAX_SUGGESTIONS, WikiLinkService, get_wikilink_service

router = APIRouter(prefix="/api", tags=["notes"])


@router.get("/notes", response_model=List[CanvasNode])
async def list_notes(
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
):
    return service.list_notes(auth.user_id)


@router.get("/notes/backlinks", response_model=List[CanvasNode])
async def get_wikilink_backlinks(
    title: str = Query(..., min_length=1, max_length=256),
    auth: AuthContext = Depends(get_auth_context),
    resolver: BacklinkResolver = Depends(get_backlink_resolver),
):
    """Notes containing ``[[title]]``, other than the note titled ``title``."""
    return resolver.get_wikilink_backlinks(auth.user_id, title)


@router.get("/wikilinks/suggest", response_model=WikiLinkSuggestions)
async def suggest_wikilinks(
    q: str = Query("", max_length=256),
    limit: int = Query(MAX_SUGGESTIONS, ge=1, le=MAX_SUGGESTIONS),
    auth: AuthContext = Depends(get_auth_context),
    service: WikiLinkService = Depends(get_wikilink_service),
):
    return service.suggest(auth.user_id, q, limit=limit)


@router.post("/wikilinks/open", response_model=WikiLinkResolution)
async def open_wikilink(
    request: WikiLinkOpenRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: WikiLinkService = Depends(get_wikilink_service),
):
    """Resolve a clicked [[link]], creating the note when it does not exist yet."""
    try:
        return service.open_link(
            auth.user_id, request.title, create_if_missing=request.create_if_missing
        )
    except LookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": str(exc)},
        ) from exc


__all__ = ["router"]
