"""Completion sink contract.

A completion sink receives the full text of a response once the model has
finished generating it. It is called at most once per stream, never with
partial text, never after a cancellation and never for an empty response.
"""

import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

CompletionSink = Callable[[str], Awaitable[None]]


class SinkError(Exception):
    """Raised when a completion sink fails and failures are fatal."""

    pass


async def run_sink(sink: CompletionSink, text: str) -> Exception | None:
    """Invoke a sink and capture its failure.

    Args:
        sink: The persistence callback.
        text: Full response text.

    Returns:
        The exception raised by the sink, or None on success.
    """
    try:
        await sink(text)
    except Exception as e:
        logger.error(f"Completion sink failed after {len(text)} chars: {e}")
        return e
    return None
