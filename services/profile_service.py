"""
Profile Service.

Reads and updates the authenticated user's profile. Only the bio and the avatar
are mutable. An avatar arrives as a ``data:`` payload and is forwarded to the
media relay; what happens when that upload fails is decided by
`Settings.avatar_media_policy`:

- ``STRICT`` (default): the request fails with `MediaUploadError` and nothing is
  written, not even the bio.
- ``BEST_EFFORT``: the avatar is skipped and the bio is still saved.
"""

import logging
from typing import Optional

from core.config import Settings
from core.database import Database
from core.exceptions import NotFoundError
from core.models import User, UserPublicView, utcnow
from core.validation import InputValidator
from providers.media_relay import MediaKind, MediaRelay

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, database: Database, settings: Settings, media_relay: MediaRelay):
        self.database = database
        self.settings = settings
        self.media_relay = media_relay

    async def get_profile(self, user_id: str) -> UserPublicView:
        async with self.database.session() as session:
            user = await session.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return UserPublicView.from_user(user)

    async def update_profile(
        self,
        user_id: str,
        bio: Optional[str] = None,
        avatar_payload: Optional[str] = None,
    ) -> UserPublicView:
        """Update bio and/or avatar and return the new public view"""
        if bio is not None:
            bio = InputValidator.validate_bio(bio)

        # Existence check first so unknown users never trigger an upload
        await self.get_profile(user_id)

        # Upload before touching the row so a strict failure leaves it as is
        avatar_url = None
        if avatar_payload:
            logger.info(f"Uploading profile image for user {user_id}")
            avatar_url = await self.media_relay.upload_with_policy(
                avatar_payload,
                MediaKind.IMAGE,
                self.settings.media_folder("profiles"),
                self.settings.avatar_media_policy,
                timeout=self.settings.profile_upload_timeout,
            )

        async with self.database.session() as session:
            user = await session.get(User, user_id)
            if not user:
                raise NotFoundError("User", user_id)

            if bio is not None:
                user.bio = bio
            if avatar_url:
                user.avatar_url = avatar_url
            user.updated_at = utcnow()

            session.add(user)
            await session.commit()
            await session.refresh(user)

        logger.info(f"Profile updated for user {user_id}")
        return UserPublicView.from_user(user)
