"""FastMCP server exposing semantic linking tools over stdio."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field

load_dotenv()

from ..services.backlinks import get_backlink_resolver
from ..services.database import init_database
from ..services.link_materializer import get_link_materializer
from ..services.relatedness import MAX_LIMIT, get_relatedness_engine
from ..services.wikilinks import MAX_SUGGESTIONS, get_wikilink_service

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "memex",
    instructions=(
        "Semantic linking tools for a personal knowledge base of chat messages and canvas notes. "
        "All tools act as the user in LOCAL_USER_ID (default 'local-dev'). Scores are cosine "
        "similarities in [0, 1], higher is closer. Wiki-links use [[Title]] syntax and match "
        "titles case-insensitively."
    ),
)


def _current_user_id() -> str:
    return os.getenv("LOCAL_USER_ID", "local-dev")


def _log_tool(tool_name: str, user_id: str, start_time: float, **extra: Any) -> None:
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "MCP tool called",
        extra={
            "tool_name": tool_name,
            "user_id": user_id,
            "duration_ms": f"{duration_ms:.2f}",
            **extra,
        },
    )


@mcp.tool(
    name="find_related",
    description="Find chat messages and notes semantically related to a text.",
)
async def find_related(
    query: str = Field(..., description="Text to find neighbours for."),
    limit: int = Field(default=5, ge=1, le=MAX_LIMIT, description="Hits per collection."),
) -> Dict[str, Any]:
    start_time = time.time()
    user_id = _current_user_id()

    result = await get_relatedness_engine().find_related(query, user_id, limit=limit)

    _log_tool(
        "find_related",
        user_id,
        start_time,
        message_hits=len(result.messages),
        node_hits=len(result.nodes),
    )
    return result.model_dump(mode="json")


@mcp.tool(
    name="link_related",
    description="Connect a note to its closest notes with edges labelled by similarity percent.",
)
async def link_related(
    node_id: str = Field(..., description="Canvas node to link from."),
    limit: int = Field(default=3, ge=1, le=MAX_LIMIT, description="Notes to consider."),
) -> List[Dict[str, Any]]:
    start_time = time.time()
    user_id = _current_user_id()

    edges = await get_link_materializer().link_related(user_id, node_id, limit=limit)
    if edges is None:
        raise ValueError(f"Node '{node_id}' not found")

    _log_tool("link_related", user_id, start_time, node_id=node_id, edges=len(edges))
    return [edge.model_dump(mode="json") for edge in edges]


@mcp.tool(name="get_backlinks", description="Notes connected to a node by an incoming edge.")
def get_backlinks(
    node_id: str = Field(..., description="Canvas node id."),
) -> List[Dict[str, Any]]:
    start_time = time.time()
    user_id = _current_user_id()

    backlinks = get_backlink_resolver().get_direct_backlinks(user_id, node_id)

    _log_tool("get_backlinks", user_id, start_time, node_id=node_id, result_count=len(backlinks))
    return [
        {
            "id": backlink.node.id,
            "title": backlink.node.title,
            "edge_id": backlink.edge_id,
            "edge_label": backlink.edge_label,
        }
        for backlink in backlinks
    ]


@mcp.tool(
    name="get_wikilink_backlinks",
    description="Notes whose content links to the given title with [[Title]].",
)
def get_wikilink_backlinks(
    title: str = Field(..., description="Note title (case-insensitive)."),
) -> List[Dict[str, Any]]:
    start_time = time.time()
    user_id = _current_user_id()

    notes = get_backlink_resolver().get_wikilink_backlinks(user_id, title)

    _log_tool("get_wikilink_backlinks", user_id, start_time, result_count=len(notes))
    return [{"id": note.id, "title": note.title} for note in notes]


@mcp.tool(
    name="suggest_wikilinks",
    description="Existing note titles containing the query, for completing a [[link]].",
)
def suggest_wikilinks(
    query: str = Field(default="", description="Partial title; empty lists the first notes."),
) -> Dict[str, Any]:
    start_time = time.time()
    user_id = _current_user_id()

    suggestions = get_wikilink_service().suggest(user_id, query, limit=MAX_SUGGESTIONS)

    _log_tool("suggest_wikilinks", user_id, start_time, result_count=len(suggestions.items))
    return suggestions.model_dump(mode="json")


if __name__ == "__main__":
    init_database()
    logger.info("Starting MCP server", extra={"transport": "stdio"})
    mcp.run(transport="stdio")
