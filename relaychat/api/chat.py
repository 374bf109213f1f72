"""Chat endpoints: conversations, messages, analysis and response streaming.

The streaming endpoint hands the model's fragment generator to a
StreamController and returns its byte stream as the response body. The
controller persists the assistant reply once the model has finished.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from relaychat.agent.analysis_agent import AnalysisService
from relaychat.agent.chat_agent import AgentService
from relaychat.api.deps import (
    get_analyzer,
    get_attachment_store,
    get_chat_agent,
    get_chat_store,
    get_current_user,
    get_retry_policy,
    get_user_store,
)
from relaychat.models.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ChatMessageRequest,
    ChatMessageResponse,
    Conversation,
    ConversationListResponse,
    ConversationUpdate,
    MessageListResponse,
    StreamRequest,
    SuccessResponse,
    UserFact,
    UserProfile,
)
from relaychat.retry import RetryPolicy
from relaychat.storage.attachments import AttachmentStore
from relaychat.storage.chat_store import ChatStore
from relaychat.storage.user_store import UserStore
from relaychat.streaming.config import StreamConfig, get_stream_config
from relaychat.streaming.controller import StreamController
from relaychat.streaming.encoder import get_encoder
from relaychat.tasks import join_independent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _owned_conversation(
    chat_store: ChatStore, conversation_id: str, user: UserProfile
) -> Conversation:
    """Load a conversation of the current user.

    Raises:
        HTTPException: 404 if it does not exist or belongs to someone else.
    """
    conversation = await chat_store.get_conversation(conversation_id, user.id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    return conversation


async def _analyze_and_store(
    analysis: AnalysisService,
    users: UserStore,
    user: UserProfile,
    message: str,
) -> list[UserFact]:
    """Extract new facts from a message and append them to the profile."""
    new_facts = await analysis.extract_facts(message, user.facts)
    return await users.add_facts(user.id, new_facts)


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    user: UserProfile = Depends(get_current_user),
    chat_store: ChatStore = Depends(get_chat_store),
) -> ConversationListResponse:
    """List the user's conversations, most recently active first."""
    return ConversationListResponse(conversations=await chat_store.list_conversations(user.id))


@router.put("/conversations/{conversation_id}", response_model=SuccessResponse)
async def rename_conversation(
    conversation_id: str,
    body: ConversationUpdate,
    user: UserProfile = Depends(get_current_user),
    chat_store: ChatStore = Depends(get_chat_store),
) -> SuccessResponse:
    if not await chat_store.rename_conversation(conversation_id, user.id, body.title):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    return SuccessResponse()


@router.delete("/conversations/{conversation_id}", response_model=SuccessResponse)
async def delete_conversation(
    conversation_id: str,
    user: UserProfile = Depends(get_current_user),
    chat_store: ChatStore = Depends(get_chat_store),
) -> SuccessResponse:
    """Delete a conversation together with its messages."""
    if not await chat_store.delete_conversation(conversation_id, user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    return SuccessResponse()


@router.get("/messages", response_model=MessageListResponse)
async def list_messages(
    conversation_id: str | None = Query(None),
    user: UserProfile = Depends(get_current_user),
    chat_store: ChatStore = Depends(get_chat_store),
) -> MessageListResponse:
    """List a conversation's messages, oldest first.

    Raises:
        400: conversation_id missing.
        404: Conversation not found.
    """
    if not conversation_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Conversation ID is required",
        )
    await _owned_conversation(chat_store, conversation_id, user)
    return MessageListResponse(messages=await chat_store.list_messages(conversation_id, user.id))


@router.post("/message", response_model=ChatMessageResponse)
async def submit_message(
    body: ChatMessageRequest,
    user: UserProfile = Depends(get_current_user),
    chat_store: ChatStore = Depends(get_chat_store),
    users: UserStore = Depends(get_user_store),
    attachment_store: AttachmentStore = Depends(get_attachment_store),
    analysis: AnalysisService = Depends(get_analyzer),
    retry: RetryPolicy = Depends(get_retry_policy),
) -> ChatMessageResponse:
    """Store a user message, starting a conversation if needed.

    Saving the message and analyzing it for new user facts run as
    independent tasks: a failed analysis does not fail the request, and a
    failed save does not discard facts already found.

    Raises:
        400: An attachment does not belong to the user.
        404: Conversation not found.
        500: The conversation or message could not be stored.
    """
    for attachment in body.attachments:
        if not attachment_store.owns(user.id, attachment):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid attachment: {attachment.filename}",
            )

    new_conversation: Conversation | None = None
    try:
        if body.conversation_id is None:
            title = await analysis.generate_topic(body.message)
            new_conversation = await retry.run(
                lambda: chat_store.create_conversation(user.id, title),
                description="create conversation",
            )
            conversation_id = new_conversation.id
        else:
            conversation_id = (await _owned_conversation(chat_store, body.conversation_id, user)).id
            await chat_store.touch_conversation(conversation_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to prepare conversation: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process message",
        ) from e

    outcomes = await join_independent(
        message=retry.run(
            lambda: chat_store.add_message(
                conversation_id, user.id, "user", body.message, body.attachments
            ),
            description="save user message",
        ),
        analysis=_analyze_and_store(analysis, users, user, body.message),
    )

    saved = outcomes["message"]
    if not saved.ok:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process message",
        ) from saved.error

    found = outcomes["analysis"]
    return ChatMessageResponse(
        conversation_id=conversation_id,
        new_conversation=new_conversation,
        new_facts=found.value if found.ok else [],
    )


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_message(
    body: AnalyzeRequest,
    user: UserProfile = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
    analysis: AnalysisService = Depends(get_analyzer),
) -> AnalyzeResponse:
    """Extract new facts about the user from a message and store them.

    Raises:
        500: Analysis failed.
    """
    try:
        new_facts = await _analyze_and_store(analysis, users, user, body.message)
    except Exception as e:
        logger.error(f"Message analysis failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze message",
        ) from e
    return AnalyzeResponse(new_facts=new_facts)


@router.post("/stream")
async def stream_chat(
    body: StreamRequest,
    user: UserProfile = Depends(get_current_user),
    chat_store: ChatStore = Depends(get_chat_store),
    agent: AgentService = Depends(get_chat_agent),
    stream_config: StreamConfig = Depends(get_stream_config),
    retry: RetryPolicy = Depends(get_retry_policy),
) -> StreamingResponse:
    """Stream the assistant's reply to a stored user message.

    The body is an SSE stream of StreamChunk records (or raw text when
    STREAM_ENCODING=raw). The reply is saved once generation finishes; a
    client that disconnects early leaves no assistant message behind.

    Raises:
        404: Conversation not found.
    """
    conversation = await _owned_conversation(chat_store, body.conversation_id, user)
    context = body.context if body.context is not None else user.facts

    async def save_reply(text: str) -> None:
        await retry.run(
            lambda: chat_store.add_message(conversation.id, user.id, "assistant", text),
            description="save assistant message",
        )
        await chat_store.touch_conversation(conversation.id)

    controller = StreamController(
        agent.stream_response(
            body.message,
            session_id=conversation.id,
            user_id=user.id,
            context=context,
        ),
        get_encoder(stream_config.encoding, context),
        sink=save_reply,
        config=stream_config,
    )
    logger.info(f"Streaming reply for conversation {conversation.id}")

    return StreamingResponse(
        controller.events(),
        media_type=controller.media_type,
        headers=STREAM_HEADERS,
    )
