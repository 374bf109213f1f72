"""Pydantic models for API requests, responses and stored records.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - UserProfile, UserFact: Account and learned user information
    - Conversation, ChatMessage, FileAttachment: Persisted chat records
    - StreamChunk: Structured event of a streamed response
    - *Request / *Response: Route payloads
"""

from relaychat.models.schemas import (
    ChatMessage,
    Conversation,
    FileAttachment,
    StreamChunk,
    UserFact,
    UserProfile,
)

__all__ = [
    "ChatMessage",
    "Conversation",
    "FileAttachment",
    "StreamChunk",
    "UserFact",
    "UserProfile",
]
