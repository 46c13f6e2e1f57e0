"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_DATABASE_PATH = PROJECT_ROOT / "data" / "memex.db"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    jwt_secret_key: Optional[str] = Field(
        default=None,
        description="HMAC secret for JWT signing (required for JWT/HTTP auth)",
    )
    enable_local_mode: bool = Field(
        default=True,
        description="Allow local-dev token bypass when running locally",
    )
    local_dev_token: Optional[str] = Field(
        default="local-dev-token",
        description="Static token accepted in local mode for development",
    )
    enable_noauth_mode: bool = Field(
        default=False,
        description="Treat requests without Authorization as the demo user",
    )
    database_path: Path = Field(
        default=DEFAULT_DATABASE_PATH, description="SQLite database file"
    )
    openai_api_key: Optional[str] = Field(
        default=None, description="API key for the embedding provider"
    )
    embedding_model: str = Field(default=DEFAULT_EMBEDDING_MODEL)
    embedding_base_url: str = Field(default="https://api.openai.com/v1")
    embedding_dimensions: int = Field(default=DEFAULT_EMBEDDING_DIMENSIONS, ge=1)
    embedding_timeout: float = Field(default=30.0, gt=0)
    embedding_max_attempts: int = Field(
        default=5, ge=1, description="Attempts before a refresh job is marked failed"
    )
    embedding_poll_interval: float = Field(
        default=5.0, gt=0, description="Seconds between background queue sweeps"
    )
    dedupe_related_edges: bool = Field(
        default=False,
        description="Upsert materialized edges on (source, target) instead of blind insert",
    )
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )

    @field_validator("database_path", mode="before")
    @classmethod
    def _normalize_database_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("DATABASE_PATH cannot be empty")
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def _ensure_secret(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError(
                "JWT_SECRET_KEY cannot be empty; unset the variable to disable JWT auth in local mode"
            )
        if len(cleaned) < 16:
            raise ValueError("JWT_SECRET_KEY must be at least 16 characters")
        return cleaned

    @field_validator("embedding_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


def _read_bool(key: str, default: str) -> bool:
    return (_read_env(key, default) or "").lower() not in {"0", "false", "no", ""}


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    cors_raw = _read_env("CORS_ORIGINS")
    extra = {}
    if cors_raw:
        extra["cors_origins"] = [
            origin.strip() for origin in cors_raw.split(",") if origin.strip()
        ]

    config = AppConfig(
        jwt_secret_key=_read_env("JWT_SECRET_KEY"),
        enable_local_mode=_read_bool("ENABLE_LOCAL_MODE", "true"),
        local_dev_token=_read_env("LOCAL_DEV_TOKEN", "local-dev-token"),
        enable_noauth_mode=_read_bool("ENABLE_NOAUTH_MODE", "false"),
        database_path=_read_env("DATABASE_PATH", str(DEFAULT_DATABASE_PATH)),
        openai_api_key=_read_env("OPENAI_API_KEY"),
        embedding_model=_read_env("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
        embedding_base_url=_read_env("EMBEDDING_BASE_URL", "https://api.openai.com/v1"),
        embedding_dimensions=int(
            _read_env("EMBEDDING_DIMENSIONS", str(DEFAULT_EMBEDDING_DIMENSIONS))
        ),
        embedding_timeout=float(_read_env("EMBEDDING_TIMEOUT", "30")),
        embedding_max_attempts=int(_read_env("EMBEDDING_MAX_ATTEMPTS", "5")),
        embedding_poll_interval=float(_read_env("EMBEDDING_POLL_INTERVAL", "5")),
        dedupe_related_edges=_read_bool("DEDUPE_RELATED_EDGES", "false"),
        **extra,
    )
    # Ensure the data directory exists for downstream services.
    config.database_path.parent.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "PROJECT_ROOT",
    "DEFAULT_DATABASE_PATH",
    "DEFAULT_EMBEDDING_DIMENSIONS",
]
