"""FastAPI dependencies shared by the routers.

Resources opened in the application lifespan are read from ``app.state``;
tests replace any of these through ``app.dependency_overrides``.
"""

import logging

import aiosqlite
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from relaychat.agent.analysis_agent import AnalysisService, get_analysis_service
from relaychat.agent.chat_agent import AgentService, get_agent_service
from relaychat.config import AppConfig
from relaychat.models.schemas import UserProfile
from relaychat.retry import DEFAULT_RETRY, RetryPolicy
from relaychat.security.auth import InvalidTokenError, decode_token
from relaychat.storage.attachments import AttachmentStore, LocalAttachmentStore
from relaychat.storage.chat_store import ChatStore
from relaychat.storage.user_store import UserStore

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

MODEL_NOT_CONFIGURED = "Model is not configured"


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_db(request: Request) -> aiosqlite.Connection:
    return request.app.state.db


def get_chat_store(db: aiosqlite.Connection = Depends(get_db)) -> ChatStore:
    return ChatStore(db)


def get_user_store(db: aiosqlite.Connection = Depends(get_db)) -> UserStore:
    return UserStore(db)


def get_attachment_store(config: AppConfig = Depends(get_config)) -> AttachmentStore:
    return LocalAttachmentStore(config.upload_dir)


def get_retry_policy() -> RetryPolicy:
    return DEFAULT_RETRY


async def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    config: AppConfig = Depends(get_config),
    users: UserStore = Depends(get_user_store),
) -> UserProfile:
    """Resolve the user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid,
            or its user no longer exists.
    """
    if creds is None or not creds.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token is required",
        )

    try:
        user_id = decode_token(creds.credentials, config)
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        ) from e

    user = await users.get_profile(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_chat_agent() -> AgentService:
    """Chat agent dependency.

    Raises:
        HTTPException: 503 if the model credentials are missing or invalid.
    """
    try:
        return get_agent_service()
    except ValueError as e:
        logger.error(f"Chat agent unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=MODEL_NOT_CONFIGURED,
        ) from e


def get_analyzer() -> AnalysisService:
    """Analysis agent dependency.

    Raises:
        HTTPException: 503 if the model credentials are missing or invalid.
    """
    try:
        return get_analysis_service()
    except ValueError as e:
        logger.error(f"Analysis agent unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=MODEL_NOT_CONFIGURED,
        ) from e
