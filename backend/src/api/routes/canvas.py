"""HTTP API routes for canvas nodes, edges and their links."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..middleware import AuthContext, get_auth_context
from ...models.canvas import (
    Backlink,
    CanvasEdge,
    CanvasEdgeCreate,
    CanvasNode,
    CanvasNodeCreate,
    CanvasNodeUpdate,
)
from ...models.embedding import Collection, EmbedResponse
from ...services.backlinks import BacklinkResolver, get_backlink_resolver
from ...services.canvas_service import CanvasService, get_canvas_service
from ...services.embedding_queue import EmbeddingQueue, get_embedding_queue
from ...services.link_materializer import LinkMaterializer, get_link_materializer
from ...services.relatedness import MAX_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/canvas", tags=["canvas"])


def _node_not_found(node_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "not_found", "message": f"Node '{node_id}' not found"},
    )


@router.get("/nodes", response_model=List[CanvasNode])
async def list_nodes(
    source_id: str | None = Query(None, description="Only nodes created from this source"),
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
):
    if source_id:
        return service.list_nodes_by_source(auth.user_id, source_id)
    return service.list_nodes(auth.user_id)


@router.post("/nodes", response_model=CanvasNode, status_code=status.HTTP_201_CREATED)
async def create_node(
    payload: CanvasNodeCreate,
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
):
    """Create a node. Its embedding is computed in the background."""
    return service.create_node(auth.user_id, payload)


@router.get("/nodes/{node_id}", response_model=CanvasNode)
async def get_node(
    node_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
):
    node = service.get_node(node_id, auth.user_id)
    if node is None:
        raise _node_not_found(node_id)
    return node


@router.patch("/nodes/{node_id}", response_model=CanvasNode)
async def update_node(
    node_id: str,
    update: CanvasNodeUpdate,
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
):
    node = service.update_node(node_id, auth.user_id, update)
    if node is None:
        raise _node_not_found(node_id)
    return node


@router.delete("/nodes/{node_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_node(
    node_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
):
    """Delete a node and every edge touching it."""
    if not service.delete_node(node_id, auth.user_id):
        raise _node_not_found(node_id)


@router.post("/nodes/{node_id}/embed", response_model=EmbedResponse)
async def embed_node(
    node_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
    queue: EmbeddingQueue = Depends(get_embedding_queue),
):
    """Embed the node now instead of waiting for the background queue."""
    node = service.get_node(node_id, auth.user_id)
    if node is None:
        raise _node_not_found(node_id)
    stored = await queue.embed_now(Collection.NODES, node.id, node.content)
    return EmbedResponse(success=stored)


@router.post("/nodes/{node_id}/link-related", response_model=List[CanvasEdge])
async def link_related(
    node_id: str,
    limit: int = Query(3, ge=1, le=MAX_LIMIT),
    auth: AuthContext = Depends(get_auth_context),
    materializer: LinkMaterializer = Depends(get_link_materializer),
):
    """Connect the node to its closest notes with percentage-labelled edges."""
    edges = await materializer.link_related(auth.user_id, node_id, limit=limit)
    if edges is None:
        raise _node_not_found(node_id)
    return edges


@router.get("/nodes/{node_id}/backlinks", response_model=List[Backlink])
async def get_backlinks(
    node_id: str,
    auth: AuthContext = Depends(get_auth_context),
    resolver: BacklinkResolver = Depends(get_backlink_resolver),
):
    return resolver.get_direct_backlinks(auth.user_id, node_id)


@router.get("/edges", response_model=List[CanvasEdge])
async def list_edges(
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
):
    return service.list_edges(auth.user_id)


@router.post("/edges", response_model=CanvasEdge, status_code=status.HTTP_201_CREATED)
async def create_edge(
    payload: CanvasEdgeCreate,
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
):
    edge = service.create_edge(auth.user_id, payload.source, payload.target, payload.label)
    if edge is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": "Edge endpoints not found"},
        )
    return edge


@router.delete("/edges/{edge_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_edge(
    edge_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: CanvasService = Depends(get_canvas_service),
):
    if not service.delete_edge(edge_id, auth.user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": f"Edge '{edge_id}' not found"},
        )


__all__ = ["router"]
