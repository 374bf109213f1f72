"""Unit tests for individual components in isolation.

Coverage:
    - streaming/: Chunk buffer, encoders and the stream controller
    - agent/: Agent configuration, fragment extraction and analysis parsing
    - storage/: Conversation, user and attachment stores on a temporary database
    - security/: Password hashing and access tokens
    - retry and tasks: Bounded retry and independent task joining

Uses mocks for Agno and a fake clock for flush timing.
"""
