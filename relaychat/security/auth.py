"""Authentication utilities: password hashing and JWT handling.

This module provides:
- bcrypt password hashing and verification
- Access token encode/decode helpers

The FastAPI dependency resolving the current user lives in relaychat.api.deps.
"""

import logging
from datetime import UTC, datetime, timedelta

import bcrypt
import jwt

from relaychat.config import AppConfig, get_app_config

logger = logging.getLogger(__name__)


class InvalidTokenError(Exception):
    """Raised when an access token is missing, malformed, expired or forged."""

    pass


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(user_id: str, config: AppConfig | None = None) -> str:
    """Issue a signed access token for a user.

    Args:
        user_id: Subject of the token.
        config: Application configuration. Loads from environment if not provided.

    Returns:
        Encoded JWT.
    """
    config = config or get_app_config()
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=config.jwt_expires_days)).timestamp()),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def decode_token(token: str, config: AppConfig | None = None) -> str:
    """Validate an access token and return its user id.

    Raises:
        InvalidTokenError: If the token is expired or invalid.
    """
    config = config or get_app_config()
    try:
        data = jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError("Invalid token") from e

    user_id = data.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidTokenError("Invalid token")
    return user_id
