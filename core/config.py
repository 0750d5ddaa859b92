"""
Application Configuration.

This module defines the immutable `Settings` object that carries every process-
wide configuration value of the Social Feed API: database URL, token signing
key, bcrypt cost factor, media relay credentials and the media failure policies.

Key Components:
- `Settings`: A frozen dataclass built once at startup (usually through
  `Settings.from_env`) and handed to every component constructor. Nothing reads
  the environment after this object exists.
- `MediaFailurePolicy`: Names how a failed media upload affects the operation
  that requested it (`BEST_EFFORT` keeps going, `STRICT` aborts).

Environment variables are loaded from a `.env` file when one is present.
"""

import os
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Optional, Tuple

from dotenv import load_dotenv

from core.logging_config import get_logger

logger = get_logger(__name__)


class MediaFailurePolicy(Enum):
    """What to do when a media upload fails"""

    BEST_EFFORT = "best_effort"
    STRICT = "strict"


def _env_policy(name: str, default: MediaFailurePolicy) -> MediaFailurePolicy:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return MediaFailurePolicy(raw.strip().lower())
    except ValueError:
        raise ValueError(
            f"{name} must be one of: "
            + ", ".join(policy.value for policy in MediaFailurePolicy)
        )


def _generate_secret_key() -> str:
    """Generate a per-process signing key"""
    logger.warning(
        "Generated new JWT secret key. This should be set via JWT_SECRET_KEY environment variable."
    )
    return secrets.token_urlsafe(32)


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, immutable after startup"""

    database_url: str = "sqlite+aiosqlite:///./social_api.db"
    jwt_secret_key: str = field(default_factory=_generate_secret_key, repr=False)
    jwt_algorithm: str = "HS256"
    token_ttl: timedelta = timedelta(days=7)
    bcrypt_rounds: int = 10

    cloudinary_url: Optional[str] = field(default=None, repr=False)
    media_folder_prefix: str = ""
    profile_upload_timeout: float = 60.0
    post_image_upload_timeout: float = 120.0
    post_video_upload_timeout: float = 300.0
    post_media_policy: MediaFailurePolicy = MediaFailurePolicy.BEST_EFFORT
    avatar_media_policy: MediaFailurePolicy = MediaFailurePolicy.STRICT

    environment: str = "development"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    cors_origins: Tuple[str, ...] = ("http://localhost:3000",)
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Build settings from environment variables (and an optional .env file)"""
        load_dotenv(env_file)

        secret_key = os.getenv("JWT_SECRET_KEY") or _generate_secret_key()
        cors_origins = tuple(
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        )

        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            jwt_secret_key=secret_key,
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            token_ttl=timedelta(days=int(os.getenv("TOKEN_TTL_DAYS", "7"))),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", str(cls.bcrypt_rounds))),
            cloudinary_url=os.getenv("CLOUDINARY_URL") or None,
            media_folder_prefix=os.getenv("MEDIA_FOLDER_PREFIX", ""),
            post_media_policy=_env_policy(
                "POST_MEDIA_POLICY", MediaFailurePolicy.BEST_EFFORT
            ),
            avatar_media_policy=_env_policy(
                "AVATAR_MEDIA_POLICY", MediaFailurePolicy.STRICT
            ),
            environment=os.getenv("ENVIRONMENT", "development").lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("LOG_FILE") or None,
            cors_origins=cors_origins,
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", str(cls.port))),
        )

    def media_folder(self, name: str) -> str:
        """Storage folder for a use-site (``profiles`` or ``posts``)"""
        prefix = self.media_folder_prefix.strip("/")
        return f"{prefix}/{name}" if prefix else name
