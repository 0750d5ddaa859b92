"""
Core Authentication Primitives.

This module provides the stateless authentication building blocks of the Social
Feed API: password hashing, bearer token issuance/verification and the request
gate that turns an `Authorization` header into a user id.

Key Components:
- PasswordManager: Hashes and verifies passwords with bcrypt at a configurable
  cost factor. Hashing runs in the thread pool so it never stalls the event loop.
- JWTManager: Issues signed, expiring JSON Web Tokens that carry the user id in
  the `sub` claim, and verifies signature and expiry on every protected request.
  Every verification failure surfaces as the same `InvalidTokenError`.
- AuthGate: Extracts the bearer token from a request header and resolves it to
  a user id, or fails with `AuthenticationError`. It never touches the store.

There are no refresh tokens, no revocation list and no server-side sessions:
a token is valid until its expiry.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from starlette.concurrency import run_in_threadpool

from core.config import Settings
from core.exceptions import AuthenticationError, InvalidTokenError
from core.logging_config import get_logger

logger = get_logger(__name__)


class PasswordManager:
    """Password hashing and verification"""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """Hash password using bcrypt"""
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, hashed: str) -> bool:
        """Verify password against hash"""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False

    async def hash_password_async(self, password: str) -> str:
        return await run_in_threadpool(self.hash_password, password)

    async def verify_password_async(self, password: str, hashed: str) -> bool:
        return await run_in_threadpool(self.verify_password, password, hashed)


class JWTManager:
    """JWT token management"""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        token_ttl: timedelta = timedelta(days=7),
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_ttl = token_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "JWTManager":
        return cls(settings.jwt_secret_key, settings.jwt_algorithm, settings.token_ttl)

    def issue(self, user_id: str, now: Optional[datetime] = None) -> str:
        """Create a signed token for a user id"""
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "iat": issued_at,
            "exp": issued_at + self.token_ttl,
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Issued token for user {user_id}")
        return token

    def verify(self, token: str) -> str:
        """Verify a token and return the user id it was issued for"""
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.InvalidTokenError as e:
            # Expired and tampered tokens are reported the same way
            logger.info(f"Token rejected: {type(e).__name__}")
            raise InvalidTokenError()

        user_id = payload.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidTokenError()
        return user_id


class AuthGate:
    """Resolves ``Authorization: Bearer <token>`` headers to user ids"""

    SCHEME = "bearer"

    def __init__(self, jwt_manager: JWTManager):
        self.jwt_manager = jwt_manager

    def authenticate(self, authorization: Optional[str]) -> str:
        if not authorization:
            raise AuthenticationError("No token provided")

        scheme, _, token = authorization.strip().partition(" ")
        token = token.strip()
        if scheme.lower() != self.SCHEME or not token:
            raise AuthenticationError("Invalid token")

        try:
            return self.jwt_manager.verify(token)
        except InvalidTokenError:
            raise AuthenticationError("Invalid token")
