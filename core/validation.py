"""
Input Validation Utilities.

This module holds the domain rules applied to user input before any side effect
happens: names, emails, passwords, bios, avatar links and post content. Schema-level checks
(required fields, types) are done by the pydantic request models; the rules
here are the ones those models cannot express and that the services must
enforce no matter which caller reaches them.

Every failure raises `ValidationError`, which the API renders as a 400
``INVALID_CONTENT`` response.
"""

import re
from urllib.parse import urlparse

from core.exceptions import ValidationError
from core.logging_config import get_logger

logger = get_logger(__name__)


class InputValidator:
    """Validation and normalization for user-supplied fields"""

    EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

    NAME_MAX_LENGTH = 100
    BIO_MAX_LENGTH = 500
    AVATAR_URL_MAX_LENGTH = 1024
    PASSWORD_MIN_LENGTH = 6
    # bcrypt only looks at the first 72 bytes
    PASSWORD_MAX_BYTES = 72

    @staticmethod
    def validate_name(name: str) -> str:
        name = name.strip()
        if not name:
            raise ValidationError("name", "Name is required")
        if len(name) > InputValidator.NAME_MAX_LENGTH:
            raise ValidationError(
                "name",
                f"Name must be no more than {InputValidator.NAME_MAX_LENGTH} characters",
            )
        return name

    @staticmethod
    def validate_email(email: str) -> str:
        """Normalize an email for storage and lookup (trimmed, lower-cased)"""
        email = email.strip().lower()
        if len(email) > 254 or not InputValidator.EMAIL_PATTERN.match(email):
            raise ValidationError("email", "Invalid email format")
        return email

    @staticmethod
    def validate_password(password: str) -> str:
        if len(password) < InputValidator.PASSWORD_MIN_LENGTH:
            raise ValidationError(
                "password",
                f"Password must be at least {InputValidator.PASSWORD_MIN_LENGTH} characters long",
            )
        if len(password.encode("utf-8")) > InputValidator.PASSWORD_MAX_BYTES:
            raise ValidationError(
                "password",
                f"Password must be no more than {InputValidator.PASSWORD_MAX_BYTES} bytes long",
            )
        return password

    @staticmethod
    def validate_bio(bio: str) -> str:
        if len(bio) > InputValidator.BIO_MAX_LENGTH:
            raise ValidationError(
                "bio",
                f"Bio must be no more than {InputValidator.BIO_MAX_LENGTH} characters",
            )
        return bio

    @staticmethod
    def validate_avatar_url(url: str) -> str:
        """A stored avatar link must be an absolute http(s) URL that fits the column"""
        url = url.strip()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError("avatar", "Avatar must be an http(s) URL or an image data URL")
        if len(url) > InputValidator.AVATAR_URL_MAX_LENGTH:
            raise ValidationError(
                "avatar",
                f"Avatar URL must be no more than {InputValidator.AVATAR_URL_MAX_LENGTH} characters",
            )
        return url

    @staticmethod
    def validate_post_content(content) -> str:
        """Post content must be a non-blank string; returned trimmed"""
        if not isinstance(content, str) or not content.strip():
            logger.debug("Post content validation failed")
            raise ValidationError("content", "Content is required for creating a post")
        return content.strip()
