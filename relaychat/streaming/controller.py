"""Stream controller: drives one model response from generator to client.

The controller pulls fragments from the upstream generator, feeds them
through the ChunkBuffer, encodes every flush and hands the bytes to the
transport through ``events()``. When the generator is exhausted it drains
the buffer, calls the completion sink once with the full text and emits the
terminal event.

Phases:
    IDLE -> STREAMING -> (FLUSHING)* -> COMPLETING -> CLOSED
    STREAMING -> ERRORING -> CLOSED
    any -> CANCELLING -> CLOSED

Cancellation comes either from ``cancel()`` or from the transport dropping
the response (the ASGI server cancels the task or closes the generator when
the client disconnects). Either way the pending upstream read is cancelled,
the upstream generator is closed so the provider stops generating, pending
text is dropped and the sink is not called.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum

import anyio

from relaychat.streaming.buffer import ChunkBuffer
from relaychat.streaming.config import StreamConfig, get_stream_config
from relaychat.streaming.encoder import StreamEncoder
from relaychat.streaming.sink import CompletionSink, SinkError, run_sink

logger = logging.getLogger(__name__)

_EXHAUSTED = object()
_CANCELLED = object()


class StreamPhase(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    COMPLETING = "completing"
    ERRORING = "erroring"
    CANCELLING = "cancelling"
    CLOSED = "closed"


class StreamAbortedError(Exception):
    """Raised into the transport when a stream fails and its encoding has no error event."""

    pass


@dataclass
class StreamCallbacks:
    """Typed notifications for the caller's own state.

    Attributes:
        on_partial: Called with each flushed slice.
        on_complete: Called once with the full text after a successful stream.
        on_error: Called once with the error that ended the stream.
    """

    on_partial: Callable[[str], None] | None = None
    on_complete: Callable[[str], None] | None = None
    on_error: Callable[[Exception], None] | None = None


class StreamController:
    """Owns the state of one streamed response.

    Not shared between requests: create one controller per stream.
    """

    def __init__(
        self,
        fragments: AsyncIterator[str],
        encoder: StreamEncoder,
        *,
        sink: CompletionSink | None = None,
        config: StreamConfig | None = None,
        callbacks: StreamCallbacks | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the controller.

        Args:
            fragments: Upstream generator of text fragments.
            encoder: Wire encoder, fixed for the lifetime of the stream.
            sink: Persistence callback for the full response text.
            config: Streaming configuration. Loads from environment if not provided.
            callbacks: Optional typed notifications.
            clock: Monotonic time source used by the flush policy.
        """
        self._fragments = fragments
        self._encoder = encoder
        self._sink = sink
        self._config = config or get_stream_config()
        self._callbacks = callbacks or StreamCallbacks()
        self._buffer = ChunkBuffer(
            self._config.flush_interval,
            flush_on_sentence=self._config.flush_on_sentence,
            clock=clock,
        )
        self._phase = StreamPhase.IDLE
        self._cancel_requested = asyncio.Event()
        self._reader: asyncio.Task | None = None
        self._interrupted = False
        self._sink_task: asyncio.Task | None = None
        self._upstream_closed = False

    @property
    def phase(self) -> StreamPhase:
        return self._phase

    @property
    def is_terminated(self) -> bool:
        return self._phase is StreamPhase.CLOSED

    @property
    def media_type(self) -> str:
        return self._encoder.media_type

    @property
    def text(self) -> str:
        """Text accumulated so far."""
        return self._buffer.text

    @property
    def sink_invoked(self) -> bool:
        return self._sink_task is not None

    async def cancel(self) -> None:
        """Request cancellation of the stream.

        Safe to call at any time and more than once. A stream that has not
        started yet is closed immediately. A running stream stops before it
        processes another fragment, and a stream that has not reached the
        completion sink yet never calls it.
        """
        if self._phase in (StreamPhase.CLOSED, StreamPhase.CANCELLING):
            return
        self._cancel_requested.set()
        if self._phase is StreamPhase.IDLE:
            self._phase = StreamPhase.CANCELLING
            await self._close_upstream()
            self._phase = StreamPhase.CLOSED
            logger.info("Stream cancelled before start")
        elif self._reader is not None and self._reader is not asyncio.current_task():
            self._interrupted = True
            self._reader.cancel()

    async def events(self) -> AsyncIterator[bytes]:
        """Outbound byte stream for the transport.

        Consumes the upstream generator lazily, on first demand. Iterating a
        controller that has already started or closed yields nothing.

        Yields:
            Encoded events, in the order the fragments arrived.

        Raises:
            StreamAbortedError: The stream failed and the encoding policy
                cannot carry an error event.
        """
        if self._phase is not StreamPhase.IDLE:
            return
        self._phase = StreamPhase.STREAMING

        try:
            while True:
                fragment = await self._next_fragment()
                if fragment is _EXHAUSTED:
                    break
                if fragment is _CANCELLED or self._cancel_requested.is_set():
                    await self._abandon("cancel requested")
                    return
                flushed = self._buffer.append(fragment)
                if flushed is not None:
                    yield self._flush(flushed, final=False)

            self._phase = StreamPhase.COMPLETING
            tail = self._buffer.drain()
            if tail is not None:
                yield self._flush(tail, final=True)
            if self._cancel_requested.is_set():
                await self._abandon("cancel requested")
                return

            full_text = self._buffer.text
            failure = await self._persist(full_text)
            if failure is not None and self._config.fatal_sink_errors:
                raise SinkError(f"Failed to save response: {failure}") from failure
        except (asyncio.CancelledError, GeneratorExit):
            await self._abandon("transport closed")
            raise
        except Exception as e:
            frame = await self._fail(e)
            if frame is None:
                raise StreamAbortedError(str(e)) from e
            yield frame
            return

        await self._close_upstream()
        self._phase = StreamPhase.CLOSED
        logger.info(f"Stream completed with {len(full_text)} chars")
        if self._callbacks.on_complete:
            self._callbacks.on_complete(full_text)

        frame = self._encoder.encode_complete(full_text)
        if frame is not None:
            yield frame

    async def _next_fragment(self) -> object:
        """Read the next fragment, or stop early when cancellation is requested.

        The read is awaited in the consumer's own task, so context variables
        set by the upstream generator carry over between fragments.
        ``cancel()`` from another task interrupts the read by cancelling this
        task once; that cancellation is withdrawn here.
        """
        if self._cancel_requested.is_set():
            return _CANCELLED

        self._reader = asyncio.current_task()
        try:
            fragment = await anext(self._fragments)
        except StopAsyncIteration:
            fragment = _EXHAUSTED
        except asyncio.CancelledError:
            if not self._withdraw_interrupt():
                raise
            return _CANCELLED
        except Exception:
            # Failures that race a cancellation are not reported as errors.
            if not self._cancel_requested.is_set():
                raise
            self._withdraw_interrupt()
            return _CANCELLED
        finally:
            self._reader = None

        if self._cancel_requested.is_set():
            self._withdraw_interrupt()
            return _CANCELLED
        return fragment

    def _withdraw_interrupt(self) -> bool:
        """Take back the task cancellation sent by ``cancel()``.

        Returns:
            True if it was taken back and no other cancellation is pending.
        """
        if not self._interrupted:
            return False
        self._interrupted = False
        task = asyncio.current_task()
        return task is None or task.uncancel() == 0

    def _flush(self, text: str, *, final: bool) -> bytes:
        previous = self._phase
        self._phase = StreamPhase.FLUSHING
        frame = self._encoder.encode_partial(text, final=final)
        if self._callbacks.on_partial:
            self._callbacks.on_partial(text)
        self._phase = previous
        return frame

    async def _persist(self, text: str) -> Exception | None:
        if self._sink is None or self._sink_task is not None:
            return None
        if not text:
            logger.info("Empty response, skipping completion sink")
            return None

        # Keep a reference: the task must outlive a transport cancellation.
        self._sink_task = asyncio.ensure_future(run_sink(self._sink, text))
        return await asyncio.shield(self._sink_task)

    async def _fail(self, error: Exception) -> bytes | None:
        self._phase = StreamPhase.ERRORING
        logger.error(f"Stream failed after {len(self._buffer.text)} chars: {error}")
        self._buffer.discard()
        await self._close_upstream()
        self._phase = StreamPhase.CLOSED
        if self._callbacks.on_error:
            self._callbacks.on_error(error)
        return self._encoder.encode_error(str(error))

    async def _abandon(self, reason: str) -> None:
        if self._phase is StreamPhase.CLOSED:
            return
        self._phase = StreamPhase.CANCELLING
        self._buffer.discard()
        with anyio.CancelScope(shield=True):
            await self._close_upstream()
        self._phase = StreamPhase.CLOSED
        logger.info(f"Stream cancelled ({reason}) after {len(self._buffer.text)} chars")

    async def _close_upstream(self) -> None:
        if self._upstream_closed:
            return
        self._upstream_closed = True
        aclose = getattr(self._fragments, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.warning(f"Error closing upstream generator: {e}")
