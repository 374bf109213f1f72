"""Integration tests for components working together as a system.

Coverage:
    - Authentication and profile endpoints
    - Conversation and message endpoints
    - Streaming endpoint with persistence of the assistant reply
    - Attachment upload and download
    - Stream client against the app

Requests go through httpx ASGITransport to the real app with a temporary
SQLite database. Model access is faked through dependency overrides.
"""
