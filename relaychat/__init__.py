"""RelayChat: multi-user LLM chat backend with incremental response streaming."""

__version__ = "0.1.0"
