"""Streaming configuration with environment variable loading."""

import os
from enum import Enum

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class EncodingPolicy(str, Enum):
    """Wire format used for one stream."""

    STRUCTURED = "structured"
    RAW = "raw"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class StreamConfig(BaseModel):
    """Configuration for response streaming.

    Attributes:
        flush_interval_ms: Flush pending text once this much time has passed
            since the previous flush.
        flush_on_sentence: Flush immediately after a fragment that ends a sentence.
        encoding: Wire format of the outbound stream.
        fatal_sink_errors: Report persistence failures to the client as a
            stream error instead of only logging them.
    """

    flush_interval_ms: int = Field(
        default_factory=lambda: int(os.getenv("STREAM_FLUSH_INTERVAL_MS", "100")),
        ge=0,
        description="Minimum time between time-triggered flushes, in milliseconds",
    )
    flush_on_sentence: bool = Field(
        default_factory=lambda: _env_flag("STREAM_FLUSH_ON_SENTENCE", "true"),
        description="Flush after sentence-terminal punctuation",
    )
    encoding: EncodingPolicy = Field(
        default_factory=lambda: EncodingPolicy(
            os.getenv("STREAM_ENCODING", EncodingPolicy.STRUCTURED.value).lower()
        ),
        description="Outbound wire format",
    )
    fatal_sink_errors: bool = Field(
        default_factory=lambda: _env_flag("STREAM_FATAL_SINK_ERRORS", "false"),
        description="Treat completion sink failures as stream errors",
    )

    @property
    def flush_interval(self) -> float:
        """Flush interval in seconds."""
        return self.flush_interval_ms / 1000


def get_stream_config() -> StreamConfig:
    """Create streaming configuration from environment."""
    return StreamConfig()
