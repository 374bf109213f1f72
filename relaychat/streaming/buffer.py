"""Fragment buffering and flush policy.

Fragments from the model arrive at unpredictable sizes and intervals.
Sending each one as its own event wastes per-event overhead, holding them
too long hurts perceived latency. The buffer releases pending text when
either the flush interval has elapsed or a fragment closes a sentence.
"""

import re
import time
from collections.abc import Callable

SENTENCE_END = re.compile(r"[.!?]\s*$")


class ChunkBuffer:
    """Accumulates fragments and decides when to flush them.

    Keeps two views of the same text: the pending slice not yet flushed,
    and the full accumulated response.
    """

    def __init__(
        self,
        interval: float = 0.1,
        *,
        flush_on_sentence: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the buffer.

        Args:
            interval: Seconds after the last flush at which pending text is released.
            flush_on_sentence: Also flush after fragments ending in . ! or ?
            clock: Monotonic time source in seconds.
        """
        self._interval = interval
        self._flush_on_sentence = flush_on_sentence
        self._clock = clock
        self._pending: list[str] = []
        self._accumulated: list[str] = []
        self._last_flush = clock()

    @property
    def pending(self) -> str:
        return "".join(self._pending)

    @property
    def text(self) -> str:
        """Everything received so far, in arrival order."""
        return "".join(self._accumulated)

    @property
    def last_flush(self) -> float:
        return self._last_flush

    def append(self, fragment: str) -> str | None:
        """Add a fragment and flush if a trigger fires.

        Args:
            fragment: Text increment from the upstream generator.

        Returns:
            The flushed text, or None if the text stays pending.
        """
        if not fragment:
            return None

        self._pending.append(fragment)
        self._accumulated.append(fragment)

        now = self._clock()
        if now - self._last_flush >= self._interval:
            return self._take(now)
        if self._flush_on_sentence and SENTENCE_END.search(fragment):
            return self._take(now)
        return None

    def drain(self) -> str | None:
        """Flush whatever is pending, regardless of triggers."""
        if not self._pending:
            return None
        return self._take(self._clock())

    def discard(self) -> None:
        """Drop pending text without flushing it."""
        self._pending.clear()

    def _take(self, now: float) -> str:
        flushed = "".join(self._pending)
        self._pending.clear()
        self._last_flush = now
        return flushed
