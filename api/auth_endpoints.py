"""
Authentication Endpoints.

This module provides the endpoints for account creation and authentication.

Endpoints Provided:
- `/auth/register`: Creates an account and returns a bearer token with the
  public view of the new user.
- `/auth/login`: Exchanges email and password for a bearer token.
- `/auth/verify`: Returns the user behind the bearer token ("who am I").

Architectural Design:
- Data Validation: Pydantic models (`RegisterRequest`, `LoginRequest`) validate
  request bodies at the boundary; domain rules (name, password length, bio) are
  applied by the credential service.
- Dependency Injection: The `CredentialService` and the authenticated user id
  are injected into endpoint functions.
- Uniform Errors: Application errors propagate as `SocialAPIException`
  subclasses and are rendered by the application's exception handlers.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import EmailStr

from core.logging_config import get_logger, log_function_call
from core.models import APIModel, UserPublicView
from services.auth_service import CredentialService
from .dependencies import get_credential_service, get_current_user_id

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


# Request/Response Models
class RegisterRequest(APIModel):
    name: str
    email: EmailStr
    password: str
    bio: Optional[str] = None
    avatar: Optional[str] = None


class LoginRequest(APIModel):
    email: str
    password: str


class TokenResponse(APIModel):
    success: bool = True
    token: str
    user: UserPublicView


class UserResponse(APIModel):
    success: bool = True
    user: UserPublicView


@router.post("/register", response_model=TokenResponse, status_code=201)
@log_function_call(logger)
async def register_user(
    request: RegisterRequest,
    service: CredentialService = Depends(get_credential_service),
):
    """Register a new user"""
    user, token = await service.register(
        name=request.name,
        email=request.email,
        password=request.password,
        bio=request.bio,
        avatar=request.avatar,
    )
    logger.info(f"User registered successfully: {user.id}")
    return TokenResponse(token=token, user=user)


@router.post("/login", response_model=TokenResponse)
@log_function_call(logger)
async def login_user(
    request: LoginRequest,
    service: CredentialService = Depends(get_credential_service),
):
    """Authenticate user and return a token"""
    token, user = await service.login(request.email, request.password)
    return TokenResponse(token=token, user=user)


@router.get("/verify", response_model=UserResponse)
@log_function_call(logger)
async def verify_token(
    user_id: str = Depends(get_current_user_id),
    service: CredentialService = Depends(get_credential_service),
):
    """Get current user information"""
    user = await service.resolve_identity(user_id)
    return UserResponse(user=user)
