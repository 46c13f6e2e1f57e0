"""Message Service - conversations and chat messages scoped to their owner."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import sqlite3
import uuid
from typing import List, Optional

from ..models.embedding import Collection
from ..models.message import Conversation, Message, MessageRole
from .database import DatabaseService
from .embedding_queue import EmbeddingQueue, get_embedding_queue
from .embedding_store import EmbeddingStore, get_embedding_store

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_TITLE = "New conversation"

MESSAGE_COLUMNS = """
    m.id, m.conversation_id, m.role, m.content, m.created_at,
    m.embedding IS NOT NULL AS has_embedding
"""


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class MessageService:
    """
    Messages do not carry a user id; every lookup joins the parent
    conversation and checks its owner.
    """

    def __init__(
        self,
        db_service: DatabaseService | None = None,
        embedding_queue: EmbeddingQueue | None = None,
        embedding_store: EmbeddingStore | None = None,
    ) -> None:
        self._db = db_service or DatabaseService()
        self._queue = embedding_queue
        self._store = embedding_store

    @property
    def queue(self) -> EmbeddingQueue:
        if self._queue is None:
            self._queue = get_embedding_queue()
        return self._queue

    @property
    def store(self) -> EmbeddingStore:
        if self._store is None:
            self._store = get_embedding_store()
        return self._store

    # Conversations

    def create_conversation(self, user_id: str, title: Optional[str] = None) -> Conversation:
        conversation_id = uuid.uuid4().hex
        now = _utcnow_iso()
        conn = self._db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO conversations (id, user_id, title, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        conversation_id,
                        user_id,
                        (title or "").strip() or DEFAULT_CONVERSATION_TITLE,
                        now,
                        now,
                    ),
                )
        finally:
            conn.close()
        logger.info(
            "Conversation created",
            extra={"user_id": user_id, "conversation_id": conversation_id},
        )
        conversation = self.get_conversation(conversation_id, user_id)
        assert conversation is not None
        return conversation

    def list_conversations(self, user_id: str) -> List[Conversation]:
        """Most recently active first."""
        conn = self._db.connect()
        try:
            rows = conn.execute(
                """
                SELECT id, user_id, title, created_at, updated_at
                FROM conversations
                WHERE user_id = ?
                ORDER BY updated_at DESC, rowid DESC
                """,
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_conversation(row) for row in rows]

    def get_conversation(self, conversation_id: str, user_id: str) -> Optional[Conversation]:
        conn = self._db.connect()
        try:
            row = conn.execute(
                """
                SELECT id, user_id, title, created_at, updated_at
                FROM conversations
                WHERE id = ? AND user_id = ?
                """,
                (conversation_id, user_id),
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_conversation(row) if row else None

    def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        """Delete the conversation and all of its messages."""
        conn = self._db.connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM conversations WHERE id = ? AND user_id = ?",
                    (conversation_id, user_id),
                )
                if cursor.rowcount == 0:
                    return False
                message_ids = [
                    row["id"]
                    for row in conn.execute(
                        "SELECT id FROM messages WHERE conversation_id = ?",
                        (conversation_id,),
                    ).fetchall()
                ]
                conn.execute(
                    "DELETE FROM messages WHERE conversation_id = ?", (conversation_id,)
                )
        finally:
            conn.close()

        for message_id in message_ids:
            self._forget_embedding(message_id)
        logger.info(
            "Conversation deleted",
            extra={
                "user_id": user_id,
                "conversation_id": conversation_id,
                "messages_removed": len(message_ids),
            },
        )
        return True

    # Messages

    def list_messages(self, conversation_id: str, user_id: str) -> List[Message]:
        """Messages in send order; empty for a foreign or unknown conversation."""
        conn = self._db.connect()
        try:
            rows = conn.execute(
                f"""
                SELECT {MESSAGE_COLUMNS}
                FROM messages m
                JOIN conversations c ON c.id = m.conversation_id
                WHERE m.conversation_id = ? AND c.user_id = ?
                ORDER BY m.created_at, m.rowid
                """,
                (conversation_id, user_id),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_message(row) for row in rows]

    def get_message(self, message_id: str, user_id: str) -> Optional[Message]:
        """Owner-checked lookup through the parent conversation."""
        conn = self._db.connect()
        try:
            row = conn.execute(
                f"""
                SELECT {MESSAGE_COLUMNS}
                FROM messages m
                JOIN conversations c ON c.id = m.conversation_id
                WHERE m.id = ? AND c.user_id = ?
                """,
                (message_id, user_id),
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_message(row) if row else None

    def send_message(
        self,
        conversation_id: str,
        user_id: str,
        content: str,
        role: MessageRole = "user",
    ) -> Optional[Message]:
        """Append a message and schedule its embedding. None if the conversation is not the user's."""
        if self.get_conversation(conversation_id, user_id) is None:
            return None

        message_id = uuid.uuid4().hex
        now = _utcnow_iso()
        conn = self._db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO messages (id, conversation_id, role, content, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (message_id, conversation_id, role, content, now),
                )
                conn.execute(
                    "UPDATE conversations SET updated_at = ? WHERE id = ?",
                    (now, conversation_id),
                )
        finally:
            conn.close()

        self.queue.enqueue(user_id, Collection.MESSAGES, message_id, content)
        logger.debug(
            "Message stored",
            extra={"user_id": user_id, "conversation_id": conversation_id, "message_id": message_id},
        )
        return self.get_message(message_id, user_id)

    def delete_message(self, message_id: str, user_id: str) -> bool:
        if self.get_message(message_id, user_id) is None:
            return False
        conn = self._db.connect()
        try:
            with conn:
                conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))
        finally:
            conn.close()
        self._forget_embedding(message_id)
        return True

    def _forget_embedding(self, message_id: str) -> None:
        self.store.remove_embedding(Collection.MESSAGES, message_id)
        self.queue.discard(Collection.MESSAGES, message_id)

    @staticmethod
    def _row_to_conversation(row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            has_embedding=bool(row["has_embedding"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


_message_service: Optional[MessageService] = None


def get_message_service() -> MessageService:
    """Get or create the message service singleton."""
    global _message_service
    if _message_service is None:
        _message_service = MessageService()
    return _message_service


__all__ = ["MessageService", "get_message_service"]
