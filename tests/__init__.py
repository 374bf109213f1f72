"""Test package for RelayChat.

Unit tests for isolated logic and integration tests for HTTP workflows.

Structure:
    - unit/: Individual function and class tests
    - integration/: API tests against the FastAPI app

The model provider is replaced with in-process fakes, so no API key or
network access is required. Leverages pytest with pytest-check for soft
assertions.
"""
