"""
Credential Service: registration, login and identity resolution.

This module defines `CredentialService`, which owns the user lifecycle from the
authentication side. It validates registration input, enforces email
uniqueness, hashes passwords, issues bearer tokens and resolves tokens back to
public user views.

Key Behaviors:
- Registration normalizes the email (trimmed, lower-cased) and checks it against
  the store before hashing; the unique index on `users.email` catches the race
  where two registrations for the same address land together.
- Login failures are deliberately vague: an unknown email and a wrong password
  raise the same `InvalidCredentialsError`.
- An avatar given at registration may be a plain URL (stored as is) or a
  ``data:`` payload, which goes through the media relay under the avatar policy.
"""

from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from core.auth import JWTManager, PasswordManager
from core.config import Settings
from core.database import Database
from core.exceptions import (
    AuthenticationError,
    EmailTakenError,
    InvalidCredentialsError,
    InvalidTokenError,
)
from core.logging_config import get_logger
from core.models import User, UserPublicView
from core.validation import InputValidator
from providers.media_relay import MediaKind, MediaRelay

logger = get_logger(__name__)


class CredentialService:
    """Registers users, checks passwords and issues tokens"""

    def __init__(
        self,
        database: Database,
        settings: Settings,
        media_relay: MediaRelay,
        password_manager: Optional[PasswordManager] = None,
        jwt_manager: Optional[JWTManager] = None,
    ):
        self.database = database
        self.settings = settings
        self.media_relay = media_relay
        self.password_manager = password_manager or PasswordManager(
            settings.bcrypt_rounds
        )
        self.jwt_manager = jwt_manager or JWTManager.from_settings(settings)

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        bio: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Tuple[UserPublicView, str]:
        """Create an account and return its public view plus a token"""
        name = InputValidator.validate_name(name)
        email = InputValidator.validate_email(email)
        password = InputValidator.validate_password(password)
        bio = InputValidator.validate_bio(bio or "")

        if await self._find_by_email(email):
            logger.warning(f"Registration rejected, email already exists: {email}")
            raise EmailTakenError(email)

        avatar_url = await self._resolve_avatar(avatar)
        password_hash = await self.password_manager.hash_password_async(password)

        user = User(
            name=name,
            email=email,
            password_hash=password_hash,
            bio=bio,
            avatar_url=avatar_url,
        )
        async with self.database.session() as session:
            session.add(user)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning(f"Registration lost race on email: {email}")
                raise EmailTakenError(email)
            await session.refresh(user)

        logger.info(f"Registered new user: {user.id}")
        return UserPublicView.from_user(user), self.jwt_manager.issue(user.id)

    async def login(self, email: str, password: str) -> Tuple[str, UserPublicView]:
        """Check credentials and return a fresh token plus the public view"""
        user = await self._find_by_email(email.strip().lower())
        if not user:
            logger.info("Login failed: unknown email")
            raise InvalidCredentialsError()

        if not await self.password_manager.verify_password_async(
            password, user.password_hash
        ):
            logger.info(f"Login failed: wrong password for user {user.id}")
            raise InvalidCredentialsError()

        logger.info(f"User logged in: {user.id}")
        return self.jwt_manager.issue(user.id), UserPublicView.from_user(user)

    async def verify_identity(self, token: str) -> UserPublicView:
        """Resolve a raw token to the current user's public view"""
        try:
            user_id = self.jwt_manager.verify(token)
        except InvalidTokenError:
            raise AuthenticationError("Invalid token")
        return await self.resolve_identity(user_id)

    async def resolve_identity(self, user_id: str) -> UserPublicView:
        """Public view for an already-authenticated user id"""
        async with self.database.session() as session:
            user = await session.get(User, user_id)
        if not user:
            logger.warning(f"Token refers to missing user {user_id}")
            raise AuthenticationError("User not found")
        return UserPublicView.from_user(user)

    async def _find_by_email(self, email: str) -> Optional[User]:
        async with self.database.session() as session:
            result = await session.exec(select(User).where(User.email == email))
            return result.first()

    async def _resolve_avatar(self, avatar: Optional[str]) -> str:
        avatar = (avatar or "").strip()
        if not avatar:
            return ""
        if not avatar.startswith("data:"):
            return InputValidator.validate_avatar_url(avatar)

        url = await self.media_relay.upload_with_policy(
            avatar,
            MediaKind.IMAGE,
            self.settings.media_folder("profiles"),
            self.settings.avatar_media_policy,
            timeout=self.settings.profile_upload_timeout,
        )
        return url or ""
