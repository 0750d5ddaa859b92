import os
import sys
from typing import AsyncGenerator, Generator, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import Settings
from core.database import Database
from core.exceptions import MediaUploadError
from main import create_app
from providers.media_relay import MediaKind, MediaPayload, MediaRelay
from services.auth_service import CredentialService
from services.post_service import PostService
from services.profile_service import ProfileService

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"

PNG_PAYLOAD = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
MP4_PAYLOAD = "data:video/mp4;base64,AAAAIGZ0eXBpc29tAAACAGlzb21pc28yYXZjMW1wNDE="


class FakeMediaRelay(MediaRelay):
    """In-memory relay: validates payloads like the real one, never touches the network"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: List[Tuple[MediaKind, str, Optional[float]]] = []

    async def upload(self, payload, kind, folder, timeout=None):
        MediaPayload.parse(payload, kind)
        if self.fail:
            raise MediaUploadError("relay unavailable")
        self.uploads.append((kind, folder, timeout))
        return f"https://media.test/{folder}/{len(self.uploads)}.{kind.value}"


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret_key=TEST_SECRET,
        bcrypt_rounds=4,
        environment="test",
        log_level="DEBUG",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def media_relay() -> FakeMediaRelay:
    return FakeMediaRelay()


@pytest.fixture
async def database(settings) -> AsyncGenerator[Database, None]:
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def credential_service(database, settings, media_relay) -> CredentialService:
    return CredentialService(database, settings, media_relay)


@pytest.fixture
def profile_service(database, settings, media_relay) -> ProfileService:
    return ProfileService(database, settings, media_relay)


@pytest.fixture
def post_service(database, settings, media_relay) -> PostService:
    return PostService(database, settings, media_relay)


@pytest.fixture
def test_client(settings, media_relay) -> Generator[TestClient, None, None]:
    """Create a test client for a freshly built app."""
    app = create_app(settings, media_relay=media_relay, configure_logging=False)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def register_user(test_client):
    """Register a user over HTTP and return (token, user)."""

    def _register(name="Ann", email="ann@x.com", password="Secret123", **extra):
        response = test_client.post(
            "/auth/register",
            json={"name": name, "email": email, "password": password, **extra},
        )
        assert response.status_code == 201, response.text
        data = response.json()
        return data["token"], data["user"]

    return _register


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return bearer


@pytest.fixture
def png_payload() -> str:
    return PNG_PAYLOAD


@pytest.fixture
def mp4_payload() -> str:
    return MP4_PAYLOAD


@pytest.fixture
def build_client(tmp_path):
    """Build a client for custom settings or relay; closed at teardown."""
    clients = []

    def _build(media_relay=None, **overrides):
        app = create_app(
            make_settings(tmp_path, **overrides),
            media_relay=media_relay or FakeMediaRelay(),
            configure_logging=False,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _build
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def failing_relay() -> FakeMediaRelay:
    return FakeMediaRelay(fail=True)
