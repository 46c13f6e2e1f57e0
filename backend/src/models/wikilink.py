"""Wiki-link suggestion and resolution models."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class WikiLinkState(str, Enum):
    """Lifecycle of a typed [[link]] until the user lands on a note."""

    TYPED = "typed"
    SUGGESTING = "suggesting"
    RESOLVED = "resolved"
    CREATE_PENDING = "create_pending"
    NAVIGATED = "navigated"


class WikiLinkSuggestion(BaseModel):
    id: str
    title: str


class WikiLinkSuggestions(BaseModel):
    query: str
    state: WikiLinkState = WikiLinkState.SUGGESTING
    items: List[WikiLinkSuggestion] = Field(default_factory=list)
    can_create: bool = Field(
        False, description="True when no existing title matches the query exactly"
    )


class WikiLinkOpenRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=256)
    create_if_missing: bool = True


class WikiLinkResolution(BaseModel):
    title: str
    state: WikiLinkState
    node_id: Optional[str] = None
    created: bool = False


__all__ = [
    "WikiLinkState",
    "WikiLinkSuggestion",
    "WikiLinkSuggestions",
    "WikiLinkOpenRequest",
    "WikiLinkResolution",
]
