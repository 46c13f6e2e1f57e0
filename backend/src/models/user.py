"""User profile models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """Authenticated user with a summary of owned content."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "user_id": "alice",
                "auth_method": "jwt",
                "conversation_count": 3,
                "node_count": 42,
            }
        }
    )

    user_id: str = Field(..., min_length=1, max_length=128, description="Internal user ID")
    auth_method: Literal["jwt", "static", "noauth"] = "jwt"
    conversation_count: int = Field(0, ge=0)
    node_count: int = Field(0, ge=0)


__all__ = ["User"]
