"""
Custom Exception Classes for the Social Feed API.

This module defines the exception hierarchy used throughout the API. Every
failure a client can observe is represented by a subclass of
`SocialAPIException`, which carries a human-readable message, a stable error
code and an HTTP status code.

Key Components:
- `SocialAPIException`: The base class. It establishes a common structure for
  errors, including a message, an error code, and optional details.
- Specific Exception Classes: `ValidationError` (invalid client input),
  `EmailTakenError`, `InvalidCredentialsError`, `AuthenticationError` and its
  `InvalidTokenError` subclass, `NotFoundError`, `MediaUploadError` and
  `DatabaseConnectionError`.
- `to_error_response`: Maps an exception to the JSON envelope every endpoint
  uses for failures: ``{"success": false, "message": ..., "error": ...}``.

Details are kept server-side for logging and are never rendered to clients.
"""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse


class SocialAPIException(Exception):
    """Base exception class for the Social Feed API"""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(SocialAPIException):
    """Raised when client input is invalid"""

    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__(
            reason,
            "INVALID_CONTENT",
            {"field": field, "reason": reason},
        )


class EmailTakenError(SocialAPIException):
    """Raised when registering an email that already exists"""

    status_code = 400

    def __init__(self, email: str):
        super().__init__(
            "User with this email already exists",
            "EMAIL_TAKEN",
            {"email": email},
        )


class InvalidCredentialsError(SocialAPIException):
    """Raised on login failure; never says which half was wrong"""

    status_code = 400

    def __init__(self):
        super().__init__("Invalid credentials", "INVALID_CREDENTIALS")


class AuthenticationError(SocialAPIException):
    """Raised when a request cannot be authenticated"""

    status_code = 401

    def __init__(self, reason: str):
        super().__init__(reason, "UNAUTHENTICATED", {"reason": reason})


class InvalidTokenError(AuthenticationError):
    """Raised when a token is malformed, tampered with or expired"""

    def __init__(self, reason: str = "Invalid token"):
        super().__init__(reason)


class NotFoundError(SocialAPIException):
    """Raised when an entity does not exist"""

    status_code = 404

    def __init__(self, entity: str, identifier: str):
        super().__init__(
            f"{entity} not found",
            "NOT_FOUND",
            {"entity": entity, "id": identifier},
        )


class MediaUploadError(SocialAPIException):
    """Raised when the media relay cannot store a payload"""

    status_code = 500

    def __init__(self, reason: str):
        super().__init__(
            f"Media upload failed: {reason}",
            "MEDIA_UPLOAD_FAILED",
            {"reason": reason},
        )


class DatabaseConnectionError(SocialAPIException):
    """Raised when database operations fail"""

    status_code = 500

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Database operation '{operation}' failed",
            "INTERNAL_ERROR",
            {"operation": operation, "reason": reason},
        )


def error_body(message: str, error_code: str) -> Dict[str, Any]:
    """Standard failure envelope"""
    return {"success": False, "message": message, "error": error_code}


def to_error_response(exc: SocialAPIException) -> JSONResponse:
    """Convert a SocialAPIException to its JSON response"""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error_code),
    )
