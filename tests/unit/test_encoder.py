"""Unit tests for the structured and raw stream encoders."""

import json

import pytest_check as check

from relaychat.models.schemas import StreamChunk, UserFact
from relaychat.streaming.config import EncodingPolicy
from relaychat.streaming.encoder import (
    STREAM_ERROR_MESSAGE,
    RawEncoder,
    StructuredEncoder,
    get_encoder,
)


def parse_frame(frame: bytes) -> StreamChunk:
    text = frame.decode("utf-8")
    assert text.startswith("data: ")
    assert text.endswith("\n\n")
    return StreamChunk.model_validate_json(text.removeprefix("data: ").strip())


class TestStructuredEncoder:
    """Tests for SSE framing of StreamChunk records."""

    def test_partial_frame(self) -> None:
        """Partial frames carry the flushed slice and partial=True."""
        chunk = parse_frame(StructuredEncoder().encode_partial("Hello"))

        check.equal(chunk.content, "Hello")
        check.is_true(chunk.partial)
        check.is_false(chunk.done)
        check.is_none(chunk.error)

    def test_final_partial_frame(self) -> None:
        """The last flushed slice is marked as not partial."""
        chunk = parse_frame(StructuredEncoder().encode_partial("end", final=True))

        check.is_false(chunk.partial)
        check.is_false(chunk.done)

    def test_complete_frame_carries_full_text(self) -> None:
        """The terminal frame repeats the full response with done=True."""
        chunk = parse_frame(StructuredEncoder().encode_complete("Hello world."))

        check.equal(chunk.content, "Hello world.")
        check.is_true(chunk.done)
        check.is_false(chunk.partial)

    def test_error_frame(self) -> None:
        """Error frames are terminal and carry a summary and details."""
        chunk = parse_frame(StructuredEncoder().encode_error("provider timeout"))

        check.is_true(chunk.done)
        check.equal(chunk.error, STREAM_ERROR_MESSAGE)
        check.equal(chunk.details, "provider timeout")
        check.equal(chunk.content, "")

    def test_context_attached_to_content_frames(self) -> None:
        """Caller-supplied context is echoed on content events."""
        facts = [UserFact(category="Hobby", info="Chess")]
        encoder = StructuredEncoder(facts)

        check.equal(parse_frame(encoder.encode_partial("a")).context[0].info, "Chess")
        check.equal(parse_frame(encoder.encode_complete("a")).context[0].category, "Hobby")

    def test_newlines_cannot_break_framing(self) -> None:
        """Content with blank lines stays inside a single SSE record."""
        frame = StructuredEncoder().encode_partial("line one\n\ndata: fake\n\n")
        body = frame.decode("utf-8")

        check.equal(body.count("\n\n"), 1)
        check.equal(json.loads(body[6:])["content"], "line one\n\ndata: fake\n\n")

    def test_media_type(self) -> None:
        assert StructuredEncoder.media_type == "text/event-stream"


class TestRawEncoder:
    """Tests for bare text encoding."""

    def test_partial_is_utf8_text(self) -> None:
        """Partial events are the text bytes without an envelope."""
        assert RawEncoder().encode_partial("héllo") == "héllo".encode()

    def test_no_terminal_or_error_events(self) -> None:
        """Raw streams signal the end only by closing."""
        encoder = RawEncoder()

        check.is_none(encoder.encode_complete("full"))
        check.is_none(encoder.encode_error("boom"))
        check.is_true(encoder.media_type.startswith("text/plain"))


class TestGetEncoder:
    """Tests for encoder selection by policy."""

    def test_structured_policy(self) -> None:
        assert isinstance(get_encoder(EncodingPolicy.STRUCTURED), StructuredEncoder)

    def test_raw_policy(self) -> None:
        assert isinstance(get_encoder(EncodingPolicy.RAW), RawEncoder)
