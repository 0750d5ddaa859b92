"""
Core data models for the Social Feed API

Defines the SQLModel tables (User, Post, PostLike, PostComment) and the public
views returned by the API. Views serialize with camelCase field names and never
include the password hash.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import DateTime, Text
from sqlmodel import Field, SQLModel


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(SQLModel, table=True):
    """Registered account. The email column is stored lower-cased."""

    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    name: str = Field(max_length=100)
    email: str = Field(max_length=254, unique=True, index=True)
    password_hash: str = Field(max_length=128)
    bio: str = Field(default="", max_length=500)
    avatar_url: str = Field(default="", max_length=1024)
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True)
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True)
    )


class Post(SQLModel, table=True):
    __tablename__ = "posts"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    author_id: str = Field(foreign_key="users.id", index=True, max_length=32)
    content: str = Field(sa_type=Text)
    image_url: Optional[str] = Field(default=None, max_length=1024)
    video_url: Optional[str] = Field(default=None, max_length=1024)
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), index=True
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True)
    )
    # insertion order; breaks ties between posts sharing a timestamp
    seq: Optional[int] = Field(default=None, unique=True, index=True)


class PostLike(SQLModel, table=True):
    """One row per (post, user); the composite key keeps the like set unique"""

    __tablename__ = "post_likes"

    post_id: str = Field(foreign_key="posts.id", primary_key=True, max_length=32)
    user_id: str = Field(foreign_key="users.id", primary_key=True, max_length=32)
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True)
    )


class PostComment(SQLModel, table=True):
    """Comment owned by a post. Append-only."""

    __tablename__ = "post_comments"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    post_id: str = Field(foreign_key="posts.id", index=True, max_length=32)
    author_id: str = Field(foreign_key="users.id", max_length=32)
    content: str = Field(sa_type=Text)
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True)
    )


# Public views


class APIModel(BaseModel):
    """Base for request/response bodies: snake_case in Python, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserPublicView(APIModel):
    id: str
    name: str
    email: str
    bio: str
    avatar: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserPublicView":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            bio=user.bio,
            avatar=user.avatar_url,
            created_at=as_utc(user.created_at),
            updated_at=as_utc(user.updated_at),
        )


class AuthorView(APIModel):
    id: str
    name: str
    avatar: str = ""

    @classmethod
    def from_user(cls, user: Optional[User], user_id: str) -> "AuthorView":
        # Authors are never deleted, but a missing row should not break a feed
        if user is None:
            return cls(id=user_id, name="Unknown user")
        return cls(id=user.id, name=user.name, avatar=user.avatar_url)


class CommentView(APIModel):
    content: str
    author: AuthorView
    created_at: datetime


class PostView(APIModel):
    id: str
    content: str
    author: AuthorView
    image: Optional[str] = None
    video: Optional[str] = None
    likes: List[str] = []
    likes_count: int = 0
    comments: List[CommentView] = []
    created_at: datetime
    updated_at: datetime


class LikeResult(APIModel):
    liked: bool
    likes_count: int
