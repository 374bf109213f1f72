"""Incremental response streaming.

Turns a token-by-token generation feed into a client event stream while
persisting the accumulated result exactly once.

Components:
    - buffer: Fragment accumulation and flush policy
    - encoder: Structured (SSE/JSON) and raw wire encodings
    - sink: Completion sink contract
    - controller: Orchestrates one stream, cancellation and errors
    - config: Stream settings from environment
"""

from relaychat.streaming.buffer import ChunkBuffer
from relaychat.streaming.config import EncodingPolicy, StreamConfig, get_stream_config
from relaychat.streaming.controller import (
    StreamAbortedError,
    StreamCallbacks,
    StreamController,
    StreamPhase,
)
from relaychat.streaming.encoder import RawEncoder, StreamEncoder, StructuredEncoder, get_encoder
from relaychat.streaming.sink import CompletionSink, SinkError

__all__ = [
    "ChunkBuffer",
    "CompletionSink",
    "EncodingPolicy",
    "RawEncoder",
    "SinkError",
    "StreamAbortedError",
    "StreamCallbacks",
    "StreamConfig",
    "StreamController",
    "StreamEncoder",
    "StreamPhase",
    "StructuredEncoder",
    "get_encoder",
    "get_stream_config",
]
