"""User account and user-fact store."""

import logging
import sqlite3
import uuid
from datetime import UTC, datetime

import aiosqlite
from pydantic import BaseModel

from relaychat.models.schemas import UserFact, UserProfile

logger = logging.getLogger(__name__)


class UserExistsError(Exception):
    """Raised when registering an email that is already taken."""

    pass


class UserRecord(BaseModel):
    """Stored account including the password hash. Never returned by the API."""

    id: str
    name: str
    email: str
    password_hash: str


class UserStore:
    """Persistent user store backed by SQLite."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def create_user(self, name: str, email: str, password_hash: str) -> UserProfile:
        """Create an account.

        Raises:
            UserExistsError: If the email is already registered.
        """
        user_id = uuid.uuid4().hex
        try:
            await self._db.execute(
                """
                INSERT INTO users (id, name, email, password_hash, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, name, email.lower(), password_hash, datetime.now(UTC).isoformat()),
            )
            await self._db.commit()
        except sqlite3.IntegrityError as e:
            await self._db.rollback()
            raise UserExistsError(f"User already exists: {email}") from e

        logger.info(f"Registered user {user_id}")
        return UserProfile(id=user_id, name=name, email=email.lower())

    async def get_by_email(self, email: str) -> UserRecord | None:
        cursor = await self._db.execute(
            "SELECT id, name, email, password_hash FROM users WHERE email = ?",
            (email.lower(),),
        )
        row = await cursor.fetchone()
        return UserRecord(**dict(row)) if row else None

    async def get_profile(self, user_id: str) -> UserProfile | None:
        cursor = await self._db.execute(
            "SELECT id, name, email FROM users WHERE id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return UserProfile(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            facts=await self.list_facts(user_id),
        )

    async def update_name(self, user_id: str, name: str) -> bool:
        cursor = await self._db.execute(
            "UPDATE users SET name = ? WHERE id = ?",
            (name, user_id),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def list_facts(self, user_id: str) -> list[UserFact]:
        cursor = await self._db.execute(
            """
            SELECT category, info, created_at FROM user_facts
            WHERE user_id = ?
            ORDER BY id ASC
            """,
            (user_id,),
        )
        return [
            UserFact(
                category=row["category"],
                info=row["info"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in await cursor.fetchall()
        ]

    async def add_facts(self, user_id: str, facts: list[UserFact]) -> list[UserFact]:
        """Append facts to a user's profile.

        Returns:
            The stored facts with their creation time set.
        """
        if not facts:
            return []
        now = datetime.now(UTC)
        stored = [f.model_copy(update={"created_at": now}) for f in facts]
        await self._db.executemany(
            "INSERT INTO user_facts (user_id, category, info, created_at) VALUES (?, ?, ?, ?)",
            [(user_id, f.category, f.info, now.isoformat()) for f in stored],
        )
        await self._db.commit()
        logger.info(f"Stored {len(stored)} new facts for user {user_id}")
        return stored
