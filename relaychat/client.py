"""Async client for the streaming endpoint.

Consumes POST /chat/stream with httpx and reports how the stream ended.
A stream that closes without a completion or error event is reported as
INDETERMINATE: the reply may or may not have been stored.
The same holds for a stream carrying a record that cannot be parsed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import httpx
from pydantic import ValidationError

from relaychat.models.schemas import StreamChunk, UserFact

logger = logging.getLogger(__name__)


class StreamOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    INDETERMINATE = "indeterminate"


@dataclass
class StreamResult:
    """How a consumed stream ended.

    Attributes:
        outcome: Terminal state seen by the client.
        text: Full reply on completion, otherwise the text received so far.
        error: Error description when the stream failed.
    """

    outcome: StreamOutcome
    text: str = ""
    error: str | None = None


async def stream_chat_response(
    client: httpx.AsyncClient,
    *,
    token: str,
    message: str,
    conversation_id: str,
    context: list[UserFact] | None = None,
    on_partial: Callable[[str], None] | None = None,
    on_complete: Callable[[str], None] | None = None,
    on_error: Callable[[str], None] | None = None,
) -> StreamResult:
    """Consume the reply stream for a conversation.

    The wire format is taken from the response media type: SSE records
    for ``text/event-stream``, bare text otherwise.

    Args:
        client: HTTP client pointed at the API.
        token: Bearer token of the user.
        message: User's prompt, already stored through POST /chat/message.
        conversation_id: Conversation the reply belongs to.
        context: Facts to send instead of the stored profile.
        on_partial: Called with each flushed text slice.
        on_complete: Called with the full reply once the server confirms it.
        on_error: Called with an error description.

    Returns:
        StreamResult describing how the stream ended.
    """
    payload: dict = {"message": message, "conversation_id": conversation_id}
    if context is not None:
        payload["context"] = [fact.model_dump(mode="json") for fact in context]

    received: list[str] = []

    def fail(error: str) -> StreamResult:
        if on_error:
            on_error(error)
        return StreamResult(StreamOutcome.FAILED, "".join(received), error)

    try:
        async with client.stream(
            "POST",
            "/chat/stream",
            json=payload,
            headers={"Authorization": f"Bearer {token}", "Accept": "text/event-stream"},
        ) as response:
            if response.is_error:
                await response.aread()
                return fail(f"HTTP {response.status_code}")

            if not response.headers.get("content-type", "").startswith("text/event-stream"):
                async for text in response.aiter_text():
                    received.append(text)
                    if on_partial:
                        on_partial(text)
                return StreamResult(StreamOutcome.INDETERMINATE, "".join(received))

            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue
                try:
                    chunk = StreamChunk.model_validate_json(line[6:])
                except ValidationError as e:
                    logger.warning(f"Malformed stream record: {e}")
                    return StreamResult(
                        StreamOutcome.INDETERMINATE, "".join(received), "Malformed stream record"
                    )
                if chunk.error:
                    return fail(f"{chunk.error}: {chunk.details}" if chunk.details else chunk.error)
                if chunk.done:
                    if on_complete:
                        on_complete(chunk.content)
                    return StreamResult(StreamOutcome.COMPLETED, chunk.content)
                if chunk.content:
                    received.append(chunk.content)
                    if on_partial:
                        on_partial(chunk.content)
    except httpx.ConnectError as e:
        return fail(f"Connection failed: {e}")
    except httpx.RequestError as e:
        logger.warning(f"Stream interrupted: {e}")
        return StreamResult(StreamOutcome.INDETERMINATE, "".join(received), str(e))

    return StreamResult(StreamOutcome.INDETERMINATE, "".join(received))
