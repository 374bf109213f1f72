"""Unit tests for ChunkBuffer flush policy."""

import pytest_check as check

from relaychat.streaming.buffer import ChunkBuffer


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestChunkBufferAppend:
    """Tests for fragment accumulation and flush triggers."""

    def test_holds_fragments_within_interval(self) -> None:
        """Fragments stay pending until a trigger fires."""
        clock = FakeClock()
        buffer = ChunkBuffer(0.1, clock=clock)

        check.is_none(buffer.append("Hello"))
        check.is_none(buffer.append(" world"))
        check.equal(buffer.pending, "Hello world")
        check.equal(buffer.text, "Hello world")

    def test_sentence_end_triggers_flush(self) -> None:
        """A fragment ending in terminal punctuation flushes everything pending."""
        clock = FakeClock()
        buffer = ChunkBuffer(10.0, clock=clock)

        buffer.append("Hello")
        buffer.append(" world")
        flushed = buffer.append(".")

        check.equal(flushed, "Hello world.")
        check.equal(buffer.pending, "")
        check.equal(buffer.text, "Hello world.")

    def test_sentence_end_with_trailing_whitespace(self) -> None:
        """Whitespace after the punctuation still counts as a sentence end."""
        buffer = ChunkBuffer(10.0, clock=FakeClock())

        check.equal(buffer.append("Really?  "), "Really?  ")
        check.equal(buffer.append("Yes!\n"), "Yes!\n")

    def test_punctuation_inside_fragment_does_not_flush(self) -> None:
        """Only punctuation at the end of the new fragment is a trigger."""
        buffer = ChunkBuffer(10.0, clock=FakeClock())

        assert buffer.append("e.g. this") is None

    def test_sentence_flush_can_be_disabled(self) -> None:
        """With sentence detection off, only the interval triggers a flush."""
        clock = FakeClock()
        buffer = ChunkBuffer(0.1, flush_on_sentence=False, clock=clock)

        check.is_none(buffer.append("Done."))
        clock.advance(0.1)
        check.equal(buffer.append(" Next"), "Done. Next")

    def test_interval_triggers_flush(self) -> None:
        """Each fragment arriving after the interval flushes on its own."""
        clock = FakeClock()
        buffer = ChunkBuffer(0.1, clock=clock)

        flushes = []
        for fragment in ["alpha", " beta", " gamma"]:
            clock.advance(0.15)
            flushes.append(buffer.append(fragment))

        assert flushes == ["alpha", " beta", " gamma"]

    def test_interval_measured_from_last_flush(self) -> None:
        """The interval restarts at every flush."""
        clock = FakeClock()
        buffer = ChunkBuffer(0.1, clock=clock)

        clock.advance(0.1)
        check.equal(buffer.append("a"), "a")
        check.equal(buffer.last_flush, 0.1)

        clock.advance(0.05)
        check.is_none(buffer.append("b"))
        clock.advance(0.06)
        check.equal(buffer.append("c"), "bc")

    def test_empty_fragments_are_ignored(self) -> None:
        """Empty fragments change nothing and never flush."""
        clock = FakeClock()
        buffer = ChunkBuffer(0.1, clock=clock)

        clock.advance(1.0)
        check.is_none(buffer.append(""))
        check.equal(buffer.text, "")
        check.equal(buffer.last_flush, 0.0)

    def test_flushes_preserve_arrival_order(self) -> None:
        """Concatenated flushes equal the concatenated fragments."""
        clock = FakeClock()
        buffer = ChunkBuffer(0.1, clock=clock)
        fragments = ["The", " quick", " fox.", " It", " ran", "!", " Then"]

        flushed = []
        for i, fragment in enumerate(fragments):
            if i % 3 == 0:
                clock.advance(0.2)
            out = buffer.append(fragment)
            if out is not None:
                flushed.append(out)
        tail = buffer.drain()
        if tail is not None:
            flushed.append(tail)

        check.equal("".join(flushed), "".join(fragments))
        check.equal(buffer.text, "".join(fragments))


class TestChunkBufferDrain:
    """Tests for draining and discarding pending text."""

    def test_drain_returns_pending_text(self) -> None:
        """drain flushes regardless of triggers."""
        buffer = ChunkBuffer(10.0, clock=FakeClock())
        buffer.append("unfinished")

        check.equal(buffer.drain(), "unfinished")
        check.equal(buffer.pending, "")
        check.equal(buffer.text, "unfinished")

    def test_drain_with_nothing_pending(self) -> None:
        """drain returns None when everything was already flushed."""
        buffer = ChunkBuffer(10.0, clock=FakeClock())
        buffer.append("Done.")

        assert buffer.drain() is None

    def test_discard_keeps_accumulated_text(self) -> None:
        """discard drops the pending slice but not the full text."""
        buffer = ChunkBuffer(10.0, clock=FakeClock())
        buffer.append("partial")
        buffer.discard()

        check.equal(buffer.pending, "")
        check.is_none(buffer.drain())
        check.equal(buffer.text, "partial")
