"""Persistence for users, conversations, messages and attachments.

Uses aiosqlite for records and the local filesystem for uploaded files.
"""

from relaychat.storage.attachments import (
    AttachmentError,
    AttachmentStore,
    AttachmentTooLargeError,
    LocalAttachmentStore,
    validate_attachment,
)
from relaychat.storage.chat_store import ChatStore
from relaychat.storage.database import close_db, init_db
from relaychat.storage.user_store import UserExistsError, UserStore

__all__ = [
    "AttachmentError",
    "AttachmentStore",
    "AttachmentTooLargeError",
    "ChatStore",
    "LocalAttachmentStore",
    "UserExistsError",
    "UserStore",
    "close_db",
    "init_db",
    "validate_attachment",
]
