"""HTTP API routes for semantic relatedness queries."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from ..middleware import AuthContext, get_auth_context
from ...models.related import RankedItem, RelatedRequest, RelatedResult
from ...services.relatedness import (
    MAX_LIMIT,
    RelatednessEngine,
    get_relatedness_engine,
    merge_ranked,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["related"])


@router.post("/related", response_model=RelatedResult)
async def find_related(
    request: RelatedRequest,
    auth: AuthContext = Depends(get_auth_context),
    engine: RelatednessEngine = Depends(get_relatedness_engine),
):
    """
    Messages and notes semantically close to ``query``.

    Both lists are returned separately, each best-first. Provider failures
    surface as 502 ``provider_error``.
    """
    return await engine.find_related(request.query, auth.user_id, limit=request.limit)


@router.get("/search/semantic", response_model=List[RankedItem])
async def semantic_search(
    q: str = Query(..., min_length=1, max_length=8192),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    auth: AuthContext = Depends(get_auth_context),
    engine: RelatednessEngine = Depends(get_relatedness_engine),
):
    """Single ranked list across messages and notes."""
    result = await engine.find_related(q, auth.user_id, limit=limit)
    return merge_ranked(result, limit=limit)


__all__ = ["router"]
