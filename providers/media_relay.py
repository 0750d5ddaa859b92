"""
Media Relay Providers

A media relay forwards an encoded media payload (a ``data:`` URL) to an external
hosting service and returns the durable URL the service assigns. The relay never
stores media itself.

- `MediaRelay`: abstract base; also applies a `MediaFailurePolicy` around uploads.
- `CloudinaryMediaRelay`: uploads through the Cloudinary SDK, run off the event loop.
- `MediaPayload`: parses a data URL and checks its declared MIME type against
  the expected media kind before anything goes over the network.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from starlette.concurrency import run_in_threadpool

from core.config import MediaFailurePolicy, Settings
from core.exceptions import MediaUploadError
from core.logging_config import get_logger

logger = get_logger(__name__)


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>[a-zA-Z0-9.+-]+/[a-zA-Z0-9.+-]+)(?P<params>(;[^,;]*)*),(?P<data>.+)$",
    re.DOTALL,
)


@dataclass(frozen=True)
class MediaPayload:
    """A validated ``data:<mime>[;params],<data>`` payload"""

    raw: str
    mime_type: str

    @classmethod
    def parse(cls, payload: Any, kind: MediaKind) -> "MediaPayload":
        if not isinstance(payload, str):
            raise MediaUploadError("payload must be a data URL string")

        match = DATA_URL_PATTERN.match(payload)
        if not match:
            raise MediaUploadError(f"invalid {kind.value} data format")

        mime_type = match.group("mime").lower()
        if not mime_type.startswith(f"{kind.value}/"):
            raise MediaUploadError(
                f"expected {kind.value} payload, got {mime_type}"
            )

        return cls(raw=payload, mime_type=mime_type)


class MediaRelay(ABC):
    """Abstract base class for media relays"""

    @abstractmethod
    async def upload(
        self,
        payload: str,
        kind: MediaKind,
        folder: str,
        timeout: Optional[float] = None,
    ) -> str:
        """Upload a payload and return its durable URL. Raises MediaUploadError."""

    async def upload_with_policy(
        self,
        payload: str,
        kind: MediaKind,
        folder: str,
        policy: MediaFailurePolicy,
        timeout: Optional[float] = None,
    ) -> Optional[str]:
        """Upload under a failure policy.

        ``STRICT`` re-raises `MediaUploadError`; ``BEST_EFFORT`` logs it and
        returns ``None`` so the caller carries on without the media.
        """
        try:
            return await self.upload(payload, kind, folder, timeout=timeout)
        except MediaUploadError as e:
            if policy is MediaFailurePolicy.STRICT:
                raise
            logger.warning(
                f"Continuing without {kind.value} after upload failure: {e.message}",
                extra={"folder": folder, "media_kind": kind.value},
            )
            return None


class CloudinaryMediaRelay(MediaRelay):
    """Upload media to Cloudinary through the official SDK"""

    URL_SCHEME = "cloudinary"

    DEFAULT_TIMEOUTS = {
        MediaKind.IMAGE: 60.0,
        MediaKind.VIDEO: 300.0,
    }

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        if self.configured:
            cloudinary.config(
                cloud_name=cloud_name,
                api_key=api_key,
                api_secret=api_secret,
                secure=True,
            )

    @classmethod
    def from_url(cls, cloudinary_url: Optional[str]) -> "CloudinaryMediaRelay":
        """Build from ``cloudinary://<api_key>:<api_secret>@<cloud_name>``"""
        if not cloudinary_url:
            logger.error("CLOUDINARY_URL is not set; media uploads will fail")
            return cls()

        parsed = urlparse(cloudinary_url.strip())
        if parsed.scheme != cls.URL_SCHEME or not (
            parsed.hostname and parsed.username and parsed.password
        ):
            logger.error("Invalid CLOUDINARY_URL format; media uploads will fail")
            return cls()

        logger.info(f"Cloudinary configured with cloud name: {parsed.hostname}")
        return cls(
            cloud_name=parsed.hostname,
            api_key=unquote(parsed.username),
            api_secret=unquote(parsed.password),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryMediaRelay":
        return cls.from_url(settings.cloudinary_url)

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    async def upload(
        self,
        payload: str,
        kind: MediaKind,
        folder: str,
        timeout: Optional[float] = None,
    ) -> str:
        media = MediaPayload.parse(payload, kind)

        if not self.configured:
            raise MediaUploadError("media relay is not configured")

        timeout = timeout or self.DEFAULT_TIMEOUTS[kind]
        logger.info(
            f"Uploading {kind.value} to Cloudinary",
            extra={"folder": folder, "mime_type": media.mime_type},
        )
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                media.raw,
                folder=folder,
                resource_type=kind.value,
                timeout=timeout,
            )
        except CloudinaryError as e:
            raise MediaUploadError(str(e) or type(e).__name__)

        url = (result or {}).get("secure_url")
        if not url:
            raise MediaUploadError("upload response did not include a URL")

        logger.info(f"Cloudinary upload successful: {url}")
        return url
