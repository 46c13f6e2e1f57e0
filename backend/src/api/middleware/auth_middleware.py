"""Authentication dependency helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Literal, Optional

from fastapi import Header, HTTPException, status

from ...models.auth import JWTPayload
from ...services.auth import DEMO_USER, AuthError, AuthService, StaticTokenValidator
from ...services.config import get_config

_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service


def _unauthorized(message: str, error: str = "unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
    )


@dataclass
class AuthContext:
    """Context extracted from a bearer token."""

    user_id: str
    token: str
    payload: JWTPayload
    method: Literal["jwt", "static", "noauth"] = "jwt"


def get_auth_context(
    authorization: Annotated[Optional[str], Header(alias="Authorization")] = None,
) -> AuthContext:
    """
    Resolve the calling user from a Bearer token.

    Raises HTTPException if the header is missing/invalid.
    """
    if not authorization:
        if get_config().enable_noauth_mode:
            now = int(datetime.now(timezone.utc).timestamp())
            payload = JWTPayload(sub=DEMO_USER, iat=now, exp=now + 3600)
            return AuthContext(user_id=DEMO_USER, token="no-auth", payload=payload, method="noauth")
        raise _unauthorized("Authorization header required")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("Authorization header must be in format: Bearer <token>")

    service = get_auth_service()
    try:
        payload = service.validate_jwt(token)
    except AuthError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"error": exc.error, "message": exc.message, "detail": exc.detail},
        ) from exc

    static = any(
        isinstance(validator, StaticTokenValidator) and validator.static_token == token
        for validator in service.validators
    )
    return AuthContext(
        user_id=payload.sub,
        token=token,
        payload=payload,
        method="static" if static else "jwt",
    )


__all__ = ["AuthContext", "get_auth_context", "get_auth_service"]
