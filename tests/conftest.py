"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - app_config: Settings pointing at a temporary database and upload dir
    - stream_config: Deterministic streaming settings
    - db: Open aiosqlite connection on a fresh schema
    - fake_agent / fake_analysis: In-process stand-ins for the Agno services
    - app: Application with the lifespan running and services overridden
    - async_client: HTTPX client for API testing
    - auth_headers: Bearer header of a freshly registered user
"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path

import aiosqlite
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from relaychat.api.app import create_app
from relaychat.api.deps import get_analyzer, get_chat_agent, get_retry_policy
from relaychat.config import AppConfig
from relaychat.models.schemas import UserFact
from relaychat.retry import RetryPolicy
from relaychat.storage.database import close_db, init_db
from relaychat.streaming.config import EncodingPolicy, StreamConfig, get_stream_config

TEST_PASSWORD = "password123"


class FakeAgentService:
    """Yields canned fragments in place of the model."""

    def __init__(self) -> None:
        self.fragments: list[str] = ["Hello", " there", "."]
        self.error: Exception | None = None
        self.calls: list[dict] = []
        self.closed = 0

    async def stream_response(
        self,
        message: str,
        session_id: str,
        user_id: str | None = None,
        context: list[UserFact] | None = None,
    ) -> AsyncGenerator[str]:
        self.calls.append(
            {
                "message": message,
                "session_id": session_id,
                "user_id": user_id,
                "context": context,
            }
        )
        try:
            for fragment in self.fragments:
                await asyncio.sleep(0)
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed += 1


class FakeAnalysisService:
    """Returns a fixed title and fixed facts."""

    def __init__(self) -> None:
        self.title = "Test Topic"
        self.facts: list[UserFact] = []
        self.error: Exception | None = None
        self.messages: list[str] = []

    async def generate_topic(self, message: str) -> str:
        return self.title

    async def extract_facts(self, message: str, known: list[UserFact]) -> list[UserFact]:
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        return list(self.facts)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Application settings isolated to a temporary directory."""
    return AppConfig(
        database_path=str(tmp_path / "relaychat.db"),
        jwt_secret="integration-test-secret-long-enough-0123",
        jwt_expires_days=1,
        upload_dir=str(tmp_path / "uploads"),
        max_upload_size=1024,
        cors_origins=["*"],
    )


@pytest.fixture
def stream_config() -> StreamConfig:
    """Streaming settings independent of the environment."""
    return StreamConfig(
        flush_interval_ms=100,
        flush_on_sentence=True,
        encoding=EncodingPolicy.STRUCTURED,
        fatal_sink_errors=False,
    )


@pytest.fixture
async def db(tmp_path: Path) -> AsyncGenerator[aiosqlite.Connection]:
    """Open a database with the schema applied.

    Yields:
        aiosqlite connection, closed after the test.
    """
    connection = await init_db(str(tmp_path / "store.db"))
    yield connection
    await close_db(connection)


@pytest.fixture
def fake_agent() -> FakeAgentService:
    return FakeAgentService()


@pytest.fixture
def fake_analysis() -> FakeAnalysisService:
    return FakeAnalysisService()


@pytest.fixture
async def app(
    app_config: AppConfig,
    stream_config: StreamConfig,
    fake_agent: FakeAgentService,
    fake_analysis: FakeAnalysisService,
) -> AsyncGenerator[FastAPI]:
    """Application with its lifespan running.

    ASGITransport does not send lifespan events, so the lifespan is entered
    here to open the database.
    """
    application = create_app(app_config)
    application.dependency_overrides[get_chat_agent] = lambda: fake_agent
    application.dependency_overrides[get_analyzer] = lambda: fake_analysis
    application.dependency_overrides[get_stream_config] = lambda: stream_config
    application.dependency_overrides[get_retry_policy] = lambda: RetryPolicy(
        max_attempts=2, base_delay=0.0
    )

    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def auth_headers(async_client: AsyncClient) -> dict[str, str]:
    """Register a user and return its Authorization header."""
    response = await async_client.post(
        "/auth/register",
        json={"name": "Test User", "email": "test@example.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
