"""Unit tests for the SQLite-backed user and chat stores."""

import aiosqlite
import pytest
import pytest_check as check

from relaychat.models.schemas import FileAttachment, UserFact
from relaychat.storage.chat_store import ChatStore
from relaychat.storage.user_store import UserExistsError, UserStore


@pytest.fixture
def users(db: aiosqlite.Connection) -> UserStore:
    return UserStore(db)


@pytest.fixture
def chats(db: aiosqlite.Connection) -> ChatStore:
    return ChatStore(db)


@pytest.fixture
async def user_id(users: UserStore) -> str:
    profile = await users.create_user("Ada", "ada@example.com", "hash")
    return profile.id


class TestUserStore:
    """Tests for accounts and facts."""

    async def test_create_and_fetch(self, users: UserStore) -> None:
        """Emails are stored lowercased and looked up case-insensitively."""
        profile = await users.create_user("Ada", "Ada@Example.com", "hash")
        record = await users.get_by_email("ADA@example.com")

        check.equal(profile.email, "ada@example.com")
        check.is_not_none(record)
        check.equal(record.id, profile.id)
        check.equal(record.password_hash, "hash")

    async def test_duplicate_email_rejected(self, users: UserStore) -> None:
        await users.create_user("Ada", "ada@example.com", "hash")

        with pytest.raises(UserExistsError):
            await users.create_user("Other Ada", "ADA@example.com", "hash2")

    async def test_unknown_user(self, users: UserStore) -> None:
        check.is_none(await users.get_profile("missing"))
        check.is_none(await users.get_by_email("nobody@example.com"))

    async def test_update_name(self, users: UserStore, user_id: str) -> None:
        check.is_true(await users.update_name(user_id, "Ada Lovelace"))
        check.equal((await users.get_profile(user_id)).name, "Ada Lovelace")
        check.is_false(await users.update_name("missing", "Nobody"))

    async def test_facts_appended_in_order(self, users: UserStore, user_id: str) -> None:
        """Added facts get a timestamp and show up on the profile."""
        stored = await users.add_facts(
            user_id,
            [
                UserFact(category="Occupation", info="Mathematician"),
                UserFact(category="Hobby", info="Poetry"),
            ],
        )
        profile = await users.get_profile(user_id)

        check.is_true(all(f.created_at is not None for f in stored))
        check.equal([f.info for f in profile.facts], ["Mathematician", "Poetry"])

    async def test_no_facts_is_noop(self, users: UserStore, user_id: str) -> None:
        check.equal(await users.add_facts(user_id, []), [])
        check.equal(await users.list_facts(user_id), [])


class TestChatStore:
    """Tests for conversations and messages."""

    async def test_conversations_sorted_by_activity(
        self, chats: ChatStore, user_id: str
    ) -> None:
        """Touching a conversation moves it to the front."""
        first = await chats.create_conversation(user_id, "First")
        second = await chats.create_conversation(user_id, "Second")

        check.equal([c.id for c in await chats.list_conversations(user_id)], [second.id, first.id])

        await chats.touch_conversation(first.id)
        check.equal([c.id for c in await chats.list_conversations(user_id)], [first.id, second.id])

    async def test_conversations_scoped_to_owner(
        self, chats: ChatStore, users: UserStore, user_id: str
    ) -> None:
        """Other users can neither see, rename nor delete a conversation."""
        other = await users.create_user("Bob", "bob@example.com", "hash")
        conversation = await chats.create_conversation(user_id, "Private")

        check.is_none(await chats.get_conversation(conversation.id, other.id))
        check.equal(await chats.list_conversations(other.id), [])
        check.is_false(await chats.rename_conversation(conversation.id, other.id, "Mine"))
        check.is_false(await chats.delete_conversation(conversation.id, other.id))

    async def test_rename(self, chats: ChatStore, user_id: str) -> None:
        conversation = await chats.create_conversation(user_id, "Old")

        check.is_true(await chats.rename_conversation(conversation.id, user_id, "New"))
        check.equal((await chats.get_conversation(conversation.id, user_id)).title, "New")

    async def test_messages_in_chronological_order(
        self, chats: ChatStore, user_id: str
    ) -> None:
        """Messages come back oldest first with their attachments."""
        conversation = await chats.create_conversation(user_id, "Chat")
        attachment = FileAttachment(
            id="a" * 32,
            filename="notes.txt",
            content_type="text/plain",
            size=5,
            url="/chat/files/" + "a" * 32 + ".txt",
        )

        await chats.add_message(conversation.id, user_id, "user", "Hi", [attachment])
        await chats.add_message(conversation.id, user_id, "assistant", "Hello!")
        messages = await chats.list_messages(conversation.id, user_id)

        check.equal([m.role for m in messages], ["user", "assistant"])
        check.equal([m.content for m in messages], ["Hi", "Hello!"])
        check.equal(messages[0].attachments, [attachment])
        check.equal(messages[1].attachments, [])

    async def test_delete_removes_messages(self, chats: ChatStore, user_id: str) -> None:
        conversation = await chats.create_conversation(user_id, "Doomed")
        await chats.add_message(conversation.id, user_id, "user", "bye")

        check.is_true(await chats.delete_conversation(conversation.id, user_id))
        check.is_none(await chats.get_conversation(conversation.id, user_id))
        check.equal(await chats.list_messages(conversation.id, user_id), [])

    async def test_invalid_role_rejected(self, chats: ChatStore, user_id: str) -> None:
        conversation = await chats.create_conversation(user_id, "Chat")

        with pytest.raises(aiosqlite.IntegrityError):
            await chats.add_message(conversation.id, user_id, "system", "nope")
