"""Password hashing and access tokens."""

from relaychat.security.auth import (
    InvalidTokenError,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)

__all__ = [
    "InvalidTokenError",
    "create_access_token",
    "decode_token",
    "hash_password",
    "verify_password",
]
