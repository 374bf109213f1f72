"""Account endpoints: registration, login, token validation, profile update."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from relaychat.api.deps import get_config, get_current_user, get_user_store
from relaychat.config import AppConfig
from relaychat.models.schemas import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    UserProfile,
    UserUpdateRequest,
    ValidateResponse,
)
from relaychat.security.auth import create_access_token, hash_password, verify_password
from relaychat.storage.user_store import UserExistsError, UserStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/auth/register", response_model=AuthResponse)
async def register(
    body: RegisterRequest,
    config: AppConfig = Depends(get_config),
    users: UserStore = Depends(get_user_store),
) -> AuthResponse:
    """Create an account and return an access token.

    Raises:
        400: Email already registered.
    """
    try:
        user = await users.create_user(body.name, body.email, hash_password(body.password))
    except UserExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists",
        ) from e

    return AuthResponse(token=create_access_token(user.id, config), user=user)


@router.post("/auth/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    config: AppConfig = Depends(get_config),
    users: UserStore = Depends(get_user_store),
) -> AuthResponse:
    """Exchange credentials for an access token.

    Raises:
        401: Unknown email or wrong password.
    """
    record = await users.get_by_email(body.email)
    if record is None or not verify_password(body.password, record.password_hash):
        logger.info("Rejected login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    profile = await users.get_profile(record.id)
    return AuthResponse(token=create_access_token(record.id, config), user=profile)


@router.get("/auth/validate", response_model=ValidateResponse)
async def validate(user: UserProfile = Depends(get_current_user)) -> ValidateResponse:
    """Check a token and return the user it belongs to."""
    return ValidateResponse(user=user)


@router.put("/user", response_model=UserProfile)
async def update_user(
    body: UserUpdateRequest,
    user: UserProfile = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
) -> UserProfile:
    """Update the current user's profile."""
    if body.name is not None:
        await users.update_name(user.id, body.name)
    return await users.get_profile(user.id)
