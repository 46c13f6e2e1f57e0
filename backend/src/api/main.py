"""FastAPI application main entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .middleware import register_error_handlers
from .routes import auth, canvas, conversations, embeddings, notes, related
from ..services.config import get_config
from ..services.database import init_database
from ..services.embedding_queue import get_embedding_queue

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema and run the embedding refresh worker for the app's lifetime."""
    db_path = init_database()
    logger.info("Database ready", extra={"database_path": str(db_path)})

    queue = get_embedding_queue()
    queue.start()
    try:
        yield
    finally:
        await queue.stop()


app = FastAPI(
    title="Memex API",
    description="Personal knowledge base with semantic linking of chats and notes",
    version="0.1.0",
    lifespan=lifespan,
)

config = get_config()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth.router, tags=["auth"])
app.include_router(related.router)
app.include_router(canvas.router)
app.include_router(conversations.router)
app.include_router(notes.router)
app.include_router(embeddings.router)


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "healthy"}


__all__ = ["app"]
