"""
API Endpoints for Profiles and Posts.

This module defines the REST endpoints for the authenticated user's profile and
for the post feed.

Endpoints Provided:
- `GET /profile`, `PUT /profile`: Read or update the current user's bio/avatar.
- `GET /posts`: Public feed, newest first.
- `GET /posts/user/{user_id}`: One author's posts (authenticated).
- `POST /posts`: Create a post with optional image/video payloads.
- `POST /posts/{post_id}/like`: Toggle the current user's like.
- `POST /posts/{post_id}/comment`: Append a comment.

Architectural Design:
- Separation of Concerns: Profile and post endpoints live in separate routers
  (`profile_router` and `posts_router`).
- Dependency Injection: Services and the authenticated user id are injected
  into endpoint functions. The whole profile router sits behind the auth gate;
  post routes opt in individually because the feed is public.
- Error Handling: Services raise `SocialAPIException` subclasses, which the
  application's exception handlers turn into ``{"success": false, ...}`` bodies.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from core.logging_config import log_function_call
from core.models import APIModel, CommentView, PostView, UserPublicView
from services.post_service import PostService
from services.profile_service import ProfileService
from .dependencies import get_current_user_id, get_post_service, get_profile_service

logger = logging.getLogger(__name__)


profile_router = APIRouter(
    prefix="/profile", tags=["Profile"], dependencies=[Depends(get_current_user_id)]
)
posts_router = APIRouter(prefix="/posts", tags=["Posts"])


# Request/Response Models
class ProfileUpdateRequest(APIModel):
    bio: Optional[str] = None
    avatar_payload: Optional[str] = None


class CreatePostRequest(APIModel):
    content: str
    image_payload: Optional[str] = None
    video_payload: Optional[str] = None


class CommentRequest(APIModel):
    content: str


class ProfileResponse(APIModel):
    success: bool = True
    user: UserPublicView


class PostListResponse(APIModel):
    success: bool = True
    posts: List[PostView]


class PostResponse(APIModel):
    success: bool = True
    post: PostView


class LikeResponse(APIModel):
    success: bool = True
    liked: bool
    likes_count: int


class CommentResponse(APIModel):
    success: bool = True
    comment: CommentView


@profile_router.get("", response_model=ProfileResponse)
@log_function_call(logger)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service),
):
    """Get the current user's profile"""
    return ProfileResponse(user=await service.get_profile(user_id))


@profile_router.put("", response_model=ProfileResponse)
@log_function_call(logger)
async def update_profile(
    request: ProfileUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service),
):
    """Update bio and/or avatar"""
    user = await service.update_profile(
        user_id, bio=request.bio, avatar_payload=request.avatar_payload
    )
    return ProfileResponse(user=user)


@posts_router.get("", response_model=PostListResponse)
@log_function_call(logger)
async def list_posts(service: PostService = Depends(get_post_service)):
    """Public feed, newest first"""
    return PostListResponse(posts=await service.list())


@posts_router.get("/user/{user_id}", response_model=PostListResponse)
@log_function_call(logger)
async def list_user_posts(
    user_id: str,
    _: str = Depends(get_current_user_id),
    service: PostService = Depends(get_post_service),
):
    """Posts by one author, newest first"""
    return PostListResponse(posts=await service.list_by_author(user_id))


@posts_router.post("", response_model=PostResponse, status_code=201)
@log_function_call(logger)
async def create_post(
    request: CreatePostRequest,
    user_id: str = Depends(get_current_user_id),
    service: PostService = Depends(get_post_service),
):
    """Create a post"""
    post = await service.create(
        user_id,
        request.content,
        image_payload=request.image_payload,
        video_payload=request.video_payload,
    )
    return PostResponse(post=post)


@posts_router.post("/{post_id}/like", response_model=LikeResponse)
@log_function_call(logger)
async def toggle_like(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    service: PostService = Depends(get_post_service),
):
    """Like or unlike a post"""
    result = await service.toggle_like(post_id, user_id)
    return LikeResponse(liked=result.liked, likes_count=result.likes_count)


@posts_router.post("/{post_id}/comment", response_model=CommentResponse)
@log_function_call(logger)
async def add_comment(
    post_id: str,
    request: CommentRequest,
    user_id: str = Depends(get_current_user_id),
    service: PostService = Depends(get_post_service),
):
    """Comment on a post"""
    comment = await service.add_comment(post_id, user_id, request.content)
    return CommentResponse(comment=comment)
