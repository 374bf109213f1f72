"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relaychat.api.auth import router as auth_router
from relaychat.api.chat import router as chat_router
from relaychat.api.upload import router as upload_router
from relaychat.config import AppConfig, get_app_config
from relaychat.storage.database import close_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Open the database on startup and close it on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    config: AppConfig = app.state.config
    logger.info("Starting RelayChat API...")
    app.state.db = await init_db(config.database_path)
    try:
        yield
    finally:
        logger.info("Shutting down RelayChat API...")
        await close_db(app.state.db)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application settings; read from the environment if omitted.

    Returns:
        Configured FastAPI application instance.
    """
    config = config or get_app_config()

    application = FastAPI(
        title="RelayChat API",
        description=(
            "Multi-user chat backend relaying conversations to an LLM. "
            "Stores users, conversations and messages, learns facts about "
            "each user, and streams model replies incrementally while "
            "persisting the completed response exactly once."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.config = config

    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.include_router(auth_router)
    application.include_router(chat_router)
    application.include_router(upload_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "relaychat"}

    return application


app = create_app()
