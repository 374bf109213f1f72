from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator


class UserFact(BaseModel):
    """A piece of information learned about the user.

    Attributes:
        category: Reusable category label (e.g. "Occupation", "Hobby").
        info: The fact itself.
        created_at: When the fact was recorded.
    """

    category: str = Field(..., min_length=1)
    info: str = Field(..., min_length=1)
    created_at: datetime | None = None


class UserProfile(BaseModel):
    """Public view of a registered user."""

    id: str
    name: str
    email: EmailStr
    facts: list[UserFact] = Field(default_factory=list)


class FileAttachment(BaseModel):
    """A stored file referenced by a chat message.

    Attributes:
        id: Generated identifier of the stored file.
        filename: Original name of the uploaded file.
        content_type: MIME type reported by the client.
        size: Size in bytes.
        url: Path the file can be fetched from.
    """

    id: str
    filename: str
    content_type: str
    size: int = Field(ge=0)
    url: str


class Conversation(BaseModel):
    id: str
    user_id: str
    title: str
    created_at: datetime
    last_message_at: datetime


class ChatMessage(BaseModel):
    id: str
    conversation_id: str
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime
    attachments: list[FileAttachment] = Field(default_factory=list)


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    user: UserProfile


class ValidateResponse(BaseModel):
    success: bool = True
    user: UserProfile


class UserUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1)


class ChatMessageRequest(BaseModel):
    """Request payload for submitting a user message.

    Attributes:
        message: The user's message.
        conversation_id: Existing conversation, or None to start a new one.
        attachments: Files previously returned by the upload endpoint.
    """

    message: str = Field(..., min_length=1)
    conversation_id: str | None = None
    attachments: list[FileAttachment] = Field(default_factory=list)

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class ChatMessageResponse(BaseModel):
    success: bool = True
    conversation_id: str
    new_conversation: Conversation | None = None
    new_facts: list[UserFact] = Field(default_factory=list)


class AnalyzeRequest(BaseModel):
    message: str = Field(..., min_length=1)


class AnalyzeResponse(BaseModel):
    success: bool = True
    new_facts: list[UserFact] = Field(default_factory=list)


class StreamRequest(BaseModel):
    """Request payload for the streaming endpoint.

    Attributes:
        message: User's prompt, already stored through POST /chat/message.
        conversation_id: Conversation the reply belongs to.
        context: Facts to pass to the model; loaded from the profile if omitted.
    """

    message: str = Field(..., min_length=1)
    conversation_id: str = Field(..., min_length=1)
    context: list[UserFact] | None = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class StreamChunk(BaseModel):
    """One structured event of a streamed response.

    Attributes:
        content: Flushed text slice, or the full text on the final event.
        partial: Whether more content slices are expected.
        done: Whether this is the terminal event.
        context: Auxiliary context supplied by the caller (user facts).
        error: Error summary if the stream failed.
        details: Error details if the stream failed.
    """

    content: str = ""
    partial: bool = False
    done: bool = False
    context: list[UserFact] = Field(default_factory=list)
    error: str | None = None
    details: str | None = None


class ConversationUpdate(BaseModel):
    title: str = Field(..., min_length=1)


class ConversationListResponse(BaseModel):
    conversations: list[Conversation]


class MessageListResponse(BaseModel):
    messages: list[ChatMessage]


class SuccessResponse(BaseModel):
    success: bool = True


class UploadResponse(BaseModel):
    """Response after attachment upload.

    Attributes:
        attachments: Stored files, in upload order.
    """

    attachments: list[FileAttachment]
