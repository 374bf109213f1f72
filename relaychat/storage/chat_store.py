"""Conversation and message store.

Wraps SQL operations on conversations and messages with Pydantic record
serialization. Every read and write is scoped to the owning user.
"""

import json
import logging
import uuid
from datetime import UTC, datetime
from typing import Literal

import aiosqlite

from relaychat.models.schemas import ChatMessage, Conversation, FileAttachment

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds")


def _new_id() -> str:
    return uuid.uuid4().hex


def _conversation_from_row(row: aiosqlite.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        created_at=datetime.fromisoformat(row["created_at"]),
        last_message_at=datetime.fromisoformat(row["last_message_at"]),
    )


def _message_from_row(row: aiosqlite.Row) -> ChatMessage:
    return ChatMessage(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        created_at=datetime.fromisoformat(row["created_at"]),
        attachments=[FileAttachment(**a) for a in json.loads(row["attachments_json"])],
    )


class ChatStore:
    """Persistent conversation and message store backed by SQLite.

    All methods are async and operate on an aiosqlite connection
    initialized by database.init_db().
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def create_conversation(self, user_id: str, title: str) -> Conversation:
        now = _now()
        conversation_id = _new_id()
        await self._db.execute(
            """
            INSERT INTO conversations (id, user_id, title, created_at, last_message_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (conversation_id, user_id, title, now, now),
        )
        await self._db.commit()
        logger.info(f"Created conversation {conversation_id} for user {user_id}")
        return Conversation(
            id=conversation_id,
            user_id=user_id,
            title=title,
            created_at=datetime.fromisoformat(now),
            last_message_at=datetime.fromisoformat(now),
        )

    async def get_conversation(self, conversation_id: str, user_id: str) -> Conversation | None:
        cursor = await self._db.execute(
            "SELECT * FROM conversations WHERE id = ? AND user_id = ?",
            (conversation_id, user_id),
        )
        row = await cursor.fetchone()
        return _conversation_from_row(row) if row else None

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        """List a user's conversations, most recently active first."""
        cursor = await self._db.execute(
            """
            SELECT * FROM conversations
            WHERE user_id = ?
            ORDER BY last_message_at DESC, rowid DESC
            """,
            (user_id,),
        )
        return [_conversation_from_row(row) for row in await cursor.fetchall()]

    async def rename_conversation(self, conversation_id: str, user_id: str, title: str) -> bool:
        cursor = await self._db.execute(
            "UPDATE conversations SET title = ? WHERE id = ? AND user_id = ?",
            (title, conversation_id, user_id),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        """Delete a conversation and all of its messages.

        Returns:
            False if the conversation does not exist or belongs to another user.
        """
        if await self.get_conversation(conversation_id, user_id) is None:
            return False
        await self._db.execute(
            "DELETE FROM messages WHERE conversation_id = ?",
            (conversation_id,),
        )
        await self._db.execute(
            "DELETE FROM conversations WHERE id = ?",
            (conversation_id,),
        )
        await self._db.commit()
        logger.info(f"Deleted conversation {conversation_id}")
        return True

    async def touch_conversation(self, conversation_id: str) -> None:
        """Mark a conversation as active now."""
        await self._db.execute(
            "UPDATE conversations SET last_message_at = ? WHERE id = ?",
            (_now(), conversation_id),
        )
        await self._db.commit()

    async def add_message(
        self,
        conversation_id: str,
        user_id: str,
        role: Literal["user", "assistant"],
        content: str,
        attachments: list[FileAttachment] | None = None,
    ) -> ChatMessage:
        now = _now()
        message_id = _new_id()
        attachments = attachments or []
        await self._db.execute(
            """
            INSERT INTO messages
                (id, conversation_id, user_id, role, content, attachments_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message_id,
                conversation_id,
                user_id,
                role,
                content,
                json.dumps([a.model_dump() for a in attachments]),
                now,
            ),
        )
        await self._db.commit()
        return ChatMessage(
            id=message_id,
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=datetime.fromisoformat(now),
            attachments=attachments,
        )

    async def list_messages(self, conversation_id: str, user_id: str) -> list[ChatMessage]:
        """List a conversation's messages, oldest first."""
        cursor = await self._db.execute(
            """
            SELECT * FROM messages
            WHERE conversation_id = ? AND user_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (conversation_id, user_id),
        )
        return [_message_from_row(row) for row in await cursor.fetchall()]
