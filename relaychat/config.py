"""Application configuration with environment variable loading.

Settings for storage, authentication, uploads and HTTP.
Model settings live in relaychat.agent.config, streaming settings in
relaychat.streaming.config.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()

_DATA_DIR = Path(__file__).parent.parent / "data"


class AppConfig(BaseModel):
    """Configuration for the chat service.

    Attributes:
        database_path: SQLite file holding users, conversations and messages.
        jwt_secret: Secret used to sign access tokens.
        jwt_algorithm: Signing algorithm for access tokens.
        jwt_expires_days: Token lifetime in days.
        upload_dir: Directory where attachments are stored.
        max_upload_size: Maximum size of one uploaded file, in bytes.
        cors_origins: Allowed CORS origins.
    """

    database_path: str = Field(
        default_factory=lambda: os.getenv("DATABASE_PATH", str(_DATA_DIR / "relaychat.db")),
        description="Path to the SQLite database file",
    )
    jwt_secret: str = Field(
        default_factory=lambda: os.getenv("JWT_SECRET", "dev-secret-change-me"),
        min_length=1,
        description="Secret for signing access tokens",
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_expires_days: int = Field(
        default_factory=lambda: int(os.getenv("JWT_EXPIRES_DAYS", "30")),
        ge=1,
        description="Access token lifetime in days",
    )
    upload_dir: str = Field(
        default_factory=lambda: os.getenv("UPLOAD_DIR", str(_DATA_DIR / "uploads")),
        description="Directory for uploaded attachments",
    )
    max_upload_size: int = Field(
        default_factory=lambda: int(os.getenv("MAX_UPLOAD_SIZE", str(10 * 1024 * 1024))),
        ge=1,
        description="Maximum size of one uploaded file in bytes",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
        ],
        description="Allowed CORS origins",
    )


def get_app_config() -> AppConfig:
    """Create application configuration from environment.

    Returns:
        Configured AppConfig instance.
    """
    return AppConfig()
