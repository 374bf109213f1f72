"""Encoders turning flushed text into outbound stream events.

Two policies are supported, chosen once per stream:

- Structured: Server-Sent Events, one ``data: <json>\\n\\n`` record per event.
  Content is JSON-escaped, so newlines in the text can never be read as an
  event boundary. The last record carries ``done: true``.
- Raw: the UTF-8 text itself with no envelope. Completion is signalled only
  by the stream closing, and errors cannot be reported in-band.
"""

from typing import Protocol

from relaychat.models.schemas import StreamChunk, UserFact
from relaychat.streaming.config import EncodingPolicy

STREAM_ERROR_MESSAGE = "Stream processing failed"


class StreamEncoder(Protocol):
    """Serializes stream events into bytes for the transport."""

    media_type: str

    def encode_partial(self, text: str, *, final: bool = False) -> bytes: ...

    def encode_complete(self, full_text: str) -> bytes | None: ...

    def encode_error(self, details: str) -> bytes | None: ...


class StructuredEncoder:
    """Encodes events as SSE records holding a StreamChunk."""

    media_type = "text/event-stream"

    def __init__(self, context: list[UserFact] | None = None) -> None:
        self._context = list(context or [])

    def encode_partial(self, text: str, *, final: bool = False) -> bytes:
        return self._frame(StreamChunk(content=text, partial=not final, context=self._context))

    def encode_complete(self, full_text: str) -> bytes:
        return self._frame(StreamChunk(content=full_text, done=True, context=self._context))

    def encode_error(self, details: str) -> bytes:
        return self._frame(
            StreamChunk(done=True, error=STREAM_ERROR_MESSAGE, details=details)
        )

    @staticmethod
    def _frame(chunk: StreamChunk) -> bytes:
        return f"data: {chunk.model_dump_json()}\n\n".encode()


class RawEncoder:
    """Encodes events as bare text with no terminal marker."""

    media_type = "text/plain; charset=utf-8"

    def encode_partial(self, text: str, *, final: bool = False) -> bytes:
        return text.encode("utf-8")

    def encode_complete(self, full_text: str) -> None:
        return None

    def encode_error(self, details: str) -> None:
        return None


def get_encoder(
    policy: EncodingPolicy,
    context: list[UserFact] | None = None,
) -> StreamEncoder:
    """Build the encoder for a policy.

    Args:
        policy: Wire format of the stream.
        context: Auxiliary context attached to structured events.

    Returns:
        A new encoder instance for one stream.
    """
    if policy is EncodingPolicy.RAW:
        return RawEncoder()
    return StructuredEncoder(context)
