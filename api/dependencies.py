from fastapi import Request

from core.auth import AuthGate
from services.auth_service import CredentialService
from services.post_service import PostService
from services.profile_service import ProfileService


def get_credential_service(request: Request) -> CredentialService:
    return request.app.state.credential_service


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_post_service(request: Request) -> PostService:
    return request.app.state.post_service


def get_current_user_id(request: Request) -> str:
    """Auth gate for protected routes; attaches the user id to request state"""
    gate: AuthGate = request.app.state.auth_gate
    user_id = gate.authenticate(request.headers.get("Authorization"))
    request.state.user_id = user_id
    return user_id
