"""
Post Service: creation, feeds, likes and comments.

This module defines `PostService`, which orchestrates everything that happens
to a post after its author is authenticated.

Key Behaviors:
- Creation validates content before any upload or write. Image and video
  payloads go through the media relay under `Settings.post_media_policy`; with
  the default best-effort policy a failed upload is logged and the post is
  created without that media.
- Feeds are returned newest first, with authors, likes and comments attached.
- Likes live in their own table keyed by (post, user). A toggle deletes the row
  if present and inserts it otherwise, so the like set can never hold a user
  twice. Two toggles racing for the same user still flip against each other;
  the composite key decides which one sticks.
- Comments are appended as rows, so concurrent comments never overwrite each
  other.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from core.config import Settings
from core.database import Database
from core.exceptions import NotFoundError
from core.logging_config import get_logger
from core.models import (
    AuthorView,
    CommentView,
    LikeResult,
    Post,
    PostComment,
    PostLike,
    PostView,
    User,
    as_utc,
    utcnow,
)
from core.validation import InputValidator
from providers.media_relay import MediaKind, MediaRelay

logger = get_logger(__name__)


class PostService:
    """Creates posts and applies likes/comments"""

    def __init__(self, database: Database, settings: Settings, media_relay: MediaRelay):
        self.database = database
        self.settings = settings
        self.media_relay = media_relay

    async def create(
        self,
        author_id: str,
        content: str,
        image_payload: Optional[str] = None,
        video_payload: Optional[str] = None,
    ) -> PostView:
        """Create a post; media uploads follow the post media policy"""
        content = InputValidator.validate_post_content(content)

        async with self.database.session() as session:
            if not await session.get(User, author_id):
                raise NotFoundError("User", author_id)

        folder = self.settings.media_folder("posts")
        policy = self.settings.post_media_policy

        image_url = None
        if image_payload:
            image_url = await self.media_relay.upload_with_policy(
                image_payload,
                MediaKind.IMAGE,
                folder,
                policy,
                timeout=self.settings.post_image_upload_timeout,
            )

        video_url = None
        if video_payload:
            video_url = await self.media_relay.upload_with_policy(
                video_payload,
                MediaKind.VIDEO,
                folder,
                policy,
                timeout=self.settings.post_video_upload_timeout,
            )

        post = Post(
            author_id=author_id,
            content=content,
            image_url=image_url,
            video_url=video_url,
        )
        post.seq = (
            select(func.coalesce(func.max(Post.seq), 0) + 1).scalar_subquery()
        )
        async with self.database.session() as session:
            session.add(post)
            await session.commit()
            await session.refresh(post)
            views = await self._hydrate(session, [post])

        logger.info(
            f"Post {post.id} created by {author_id}",
            extra={
                "content_length": len(content),
                "has_image": bool(image_url),
                "has_video": bool(video_url),
            },
        )
        return views[0]

    async def list(self) -> List[PostView]:
        """All posts, newest first"""
        async with self.database.session() as session:
            result = await session.exec(
                select(Post).order_by(
                    col(Post.created_at).desc(), col(Post.seq).desc()
                )
            )
            return await self._hydrate(session, result.all())

    async def list_by_author(self, author_id: str) -> List[PostView]:
        """One author's posts, newest first"""
        async with self.database.session() as session:
            result = await session.exec(
                select(Post)
                .where(Post.author_id == author_id)
                .order_by(col(Post.created_at).desc(), col(Post.seq).desc())
            )
            return await self._hydrate(session, result.all())

    async def toggle_like(self, post_id: str, user_id: str) -> LikeResult:
        """Flip the user's like on a post"""
        async with self.database.session() as session:
            if not await session.get(Post, post_id):
                raise NotFoundError("Post", post_id)

            existing = await session.get(
                PostLike, {"post_id": post_id, "user_id": user_id}
            )
            if existing:
                await session.delete(existing)
                liked = False
            else:
                session.add(PostLike(post_id=post_id, user_id=user_id))
                liked = True

            try:
                await session.commit()
            except (IntegrityError, StaleDataError):
                # A concurrent toggle by the same user got there first
                await session.rollback()
                logger.warning(f"Concurrent like toggle on post {post_id} by {user_id}")

            likes_count = await self._count_likes(session, post_id)

        logger.info(f"User {user_id} {'liked' if liked else 'unliked'} post {post_id}")
        return LikeResult(liked=liked, likes_count=likes_count)

    async def add_comment(self, post_id: str, author_id: str, content: str) -> CommentView:
        """Append a comment to a post"""
        async with self.database.session() as session:
            post = await session.get(Post, post_id)
            if not post:
                raise NotFoundError("Post", post_id)

            comment = PostComment(post_id=post_id, author_id=author_id, content=content)
            post.updated_at = utcnow()
            session.add(comment)
            session.add(post)
            await session.commit()
            await session.refresh(comment)

            author = await session.get(User, author_id)

        logger.info(f"Comment added to post {post_id} by {author_id}")
        return CommentView(
            content=comment.content,
            author=AuthorView.from_user(author, author_id),
            created_at=as_utc(comment.created_at),
        )

    async def _count_likes(self, session: AsyncSession, post_id: str) -> int:
        result = await session.exec(
            select(func.count()).select_from(PostLike).where(PostLike.post_id == post_id)
        )
        return result.one()

    async def _load_users(
        self, session: AsyncSession, user_ids: Iterable[str]
    ) -> Dict[str, User]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await session.exec(select(User).where(col(User.id).in_(ids)))
        return {user.id: user for user in result.all()}

    async def _hydrate(self, session: AsyncSession, posts: List[Post]) -> List[PostView]:
        """Attach authors, likes and comments to posts"""
        if not posts:
            return []

        post_ids = [post.id for post in posts]

        likes_result = await session.exec(
            select(PostLike)
            .where(col(PostLike.post_id).in_(post_ids))
            .order_by(col(PostLike.created_at))
        )
        likes: Dict[str, List[str]] = defaultdict(list)
        for like in likes_result.all():
            likes[like.post_id].append(like.user_id)

        comments_result = await session.exec(
            select(PostComment)
            .where(col(PostComment.post_id).in_(post_ids))
            .order_by(col(PostComment.created_at))
        )
        comments: Dict[str, List[PostComment]] = defaultdict(list)
        for comment in comments_result.all():
            comments[comment.post_id].append(comment)

        author_ids = {post.author_id for post in posts}
        for post_comments in comments.values():
            author_ids.update(comment.author_id for comment in post_comments)
        users = await self._load_users(session, author_ids)

        views = []
        for post in posts:
            views.append(
                PostView(
                    id=post.id,
                    content=post.content,
                    author=AuthorView.from_user(users.get(post.author_id), post.author_id),
                    image=post.image_url,
                    video=post.video_url,
                    likes=likes[post.id],
                    likes_count=len(likes[post.id]),
                    comments=[
                        CommentView(
                            content=comment.content,
                            author=AuthorView.from_user(
                                users.get(comment.author_id), comment.author_id
                            ),
                            created_at=as_utc(comment.created_at),
                        )
                        for comment in comments[post.id]
                    ],
                    created_at=as_utc(post.created_at),
                    updated_at=as_utc(post.updated_at),
                )
            )
        return views
