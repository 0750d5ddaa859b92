from datetime import datetime, timedelta, timezone

import pytest
from fastapi import status

from core.config import MediaFailurePolicy


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_healthcheck(self, test_client):
        """Health check reports the database status without authentication."""
        response = test_client.get("/healthcheck")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "healthy"
        assert data["database"]["connection_healthy"] is True
        assert data["database"]["database_type"] == "sqlite"
        assert "timestamp" in data
        assert "version" in data
        assert data["environment"] == "test"
        assert "memory_percent" in data["system"]

    def test_response_headers(self, test_client):
        """Security, correlation and timing headers are present."""
        response = test_client.get("/healthcheck", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Correlation-ID"] == "req-123"
        assert "X-Process-Time" in response.headers


class TestAuthEndpoints:
    """Test registration, login and token verification."""

    def test_register(self, test_client):
        response = test_client.post(
            "/auth/register",
            json={"name": "Ann", "email": "ann@x.com", "password": "Secret123"},
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["success"] is True
        assert data["token"]
        assert set(data["user"]) == {
            "id", "name", "email", "bio", "avatar", "createdAt", "updatedAt"
        }
        assert data["user"]["name"] == "Ann"

    def test_register_duplicate_email(self, test_client, register_user):
        register_user()

        response = test_client.post(
            "/auth/register",
            json={"name": "Ann 2", "email": "ann@x.com", "password": "Secret123"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {
            "success": False,
            "message": "User with this email already exists",
            "error": "EMAIL_TAKEN",
        }

    @pytest.mark.parametrize(
        "body",
        [
            {"name": "Ann", "email": "ann@x.com"},
            {"name": "Ann", "email": "not-an-email", "password": "Secret123"},
            {"name": "Ann", "email": "ann@x.com", "password": "123"},
            {"name": "", "email": "ann@x.com", "password": "Secret123"},
            {"name": "Ann", "email": "ann@x.com", "password": "Secret123", "avatar": "ann.png"},
        ],
    )
    def test_register_invalid_input(self, test_client, body):
        response = test_client.post("/auth/register", json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "INVALID_CONTENT"
        assert data["message"]

    def test_login(self, test_client, register_user):
        _, user = register_user()

        response = test_client.post(
            "/auth/login", json={"email": "ann@x.com", "password": "Secret123"}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["token"]
        assert data["user"]["id"] == user["id"]

    def test_login_failures_are_indistinguishable(self, test_client, register_user):
        register_user()

        wrong_password = test_client.post(
            "/auth/login", json={"email": "ann@x.com", "password": "nope-nope"}
        )
        unknown_email = test_client.post(
            "/auth/login", json={"email": "zed@x.com", "password": "Secret123"}
        )

        assert wrong_password.status_code == unknown_email.status_code == 400
        assert wrong_password.json() == unknown_email.json() == {
            "success": False,
            "message": "Invalid credentials",
            "error": "INVALID_CREDENTIALS",
        }

    def test_verify(self, test_client, register_user, auth_headers):
        token, user = register_user()

        response = test_client.get("/auth/verify", headers=auth_headers(token))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["id"] == user["id"]

    def test_verify_without_token(self, test_client):
        response = test_client.get("/auth/verify")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {
            "success": False,
            "message": "No token provided",
            "error": "UNAUTHENTICATED",
        }

    @pytest.mark.parametrize(
        "header", ["Bearer garbage", "Basic abc", "Bearer ", "token-without-scheme"]
    )
    def test_verify_with_bad_header(self, test_client, header):
        response = test_client.get("/auth/verify", headers={"Authorization": header})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "UNAUTHENTICATED"

    def test_verify_token_for_deleted_user(self, test_client, auth_headers):
        jwt_manager = test_client.app.state.credential_service.jwt_manager
        token = jwt_manager.issue("ghost")

        response = test_client.get("/auth/verify", headers=auth_headers(token))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["message"] == "User not found"

    def test_verify_with_expired_token(self, test_client, register_user, auth_headers):
        _, user = register_user()
        jwt_manager = test_client.app.state.credential_service.jwt_manager
        token = jwt_manager.issue(
            user["id"], now=datetime.now(timezone.utc) - jwt_manager.token_ttl - timedelta(minutes=1)
        )

        response = test_client.get("/auth/verify", headers=auth_headers(token))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {
            "success": False,
            "message": "Invalid token",
            "error": "UNAUTHENTICATED",
        }


class TestProfileEndpoints:
    """Test the current user's profile."""

    def test_profile_requires_auth(self, test_client):
        assert test_client.get("/profile").status_code == status.HTTP_401_UNAUTHORIZED
        assert test_client.put("/profile", json={"bio": "x"}).status_code == 401

    def test_get_profile(self, test_client, register_user, auth_headers):
        token, user = register_user(bio="hello")

        response = test_client.get("/profile", headers=auth_headers(token))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["bio"] == "hello"

    def test_update_profile(self, test_client, register_user, auth_headers, png_payload):
        token, _ = register_user()

        response = test_client.put(
            "/profile",
            json={"bio": "new bio", "avatarPayload": png_payload},
            headers=auth_headers(token),
        )

        assert response.status_code == status.HTTP_200_OK
        user = response.json()["user"]
        assert user["bio"] == "new bio"
        assert user["avatar"].startswith("https://media.test/profiles/")

    def test_strict_avatar_failure(self, build_client, failing_relay, auth_headers, png_payload):
        client = build_client(media_relay=failing_relay)
        token = client.post(
            "/auth/register",
            json={"name": "Ann", "email": "ann@x.com", "password": "Secret123", "bio": "old"},
        ).json()["token"]

        response = client.put(
            "/profile",
            json={"bio": "new", "avatarPayload": png_payload},
            headers=auth_headers(token),
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "MEDIA_UPLOAD_FAILED"
        profile = client.get("/profile", headers=auth_headers(token)).json()["user"]
        assert profile["bio"] == "old"
        assert profile["avatar"] == ""


class TestPostEndpoints:
    """Test the feed, likes and comments."""

    def test_concrete_flow(self, test_client, register_user, auth_headers):
        register_user()
        login = test_client.post(
            "/auth/login", json={"email": "ann@x.com", "password": "Secret123"}
        )
        token = login.json()["token"]

        verify = test_client.get("/auth/verify", headers=auth_headers(token))
        assert verify.json()["user"]["name"] == "Ann"

        created = test_client.post(
            "/posts", json={"content": "hello"}, headers=auth_headers(token)
        )
        assert created.status_code == status.HTTP_201_CREATED
        post = created.json()["post"]
        assert post["author"]["name"] == "Ann"
        assert post["content"] == "hello"

        like = test_client.post(f"/posts/{post['id']}/like", headers=auth_headers(token))
        assert like.json() == {"success": True, "liked": True, "likesCount": 1}

        unlike = test_client.post(f"/posts/{post['id']}/like", headers=auth_headers(token))
        assert unlike.json() == {"success": True, "liked": False, "likesCount": 0}

    def test_post_view_shape(self, test_client, register_user, auth_headers):
        token, _ = register_user()

        post = test_client.post(
            "/posts", json={"content": "hi"}, headers=auth_headers(token)
        ).json()["post"]

        assert set(post) == {
            "id", "content", "author", "image", "video", "likes",
            "likesCount", "comments", "createdAt", "updatedAt",
        }
        assert set(post["author"]) == {"id", "name", "avatar"}

    def test_feed_is_public_and_newest_first(self, test_client, register_user, auth_headers):
        token, _ = register_user()
        for content in ("first", "second", "third"):
            test_client.post("/posts", json={"content": content}, headers=auth_headers(token))

        response = test_client.get("/posts")

        assert response.status_code == status.HTTP_200_OK
        assert [p["content"] for p in response.json()["posts"]] == ["third", "second", "first"]

    def test_posts_by_user(self, test_client, register_user, auth_headers):
        ann_token, ann = register_user()
        bob_token, _ = register_user(name="Bob", email="bob@x.com")
        test_client.post("/posts", json={"content": "ann's"}, headers=auth_headers(ann_token))
        test_client.post("/posts", json={"content": "bob's"}, headers=auth_headers(bob_token))

        response = test_client.get(f"/posts/user/{ann['id']}", headers=auth_headers(bob_token))

        assert response.status_code == status.HTTP_200_OK
        posts = response.json()["posts"]
        assert [p["content"] for p in posts] == ["ann's"]

    def test_posts_by_user_requires_auth(self, test_client):
        assert test_client.get("/posts/user/anyone").status_code == 401

    @pytest.mark.parametrize("body", [{"content": ""}, {"content": "   "}, {}])
    def test_create_requires_content(self, test_client, register_user, auth_headers, body):
        token, _ = register_user()

        response = test_client.post("/posts", json=body, headers=auth_headers(token))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "INVALID_CONTENT"
        assert test_client.get("/posts").json()["posts"] == []

    def test_create_requires_auth(self, test_client):
        response = test_client.post("/posts", json={"content": "hi"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_create_with_media(self, test_client, register_user, auth_headers, png_payload, mp4_payload):
        token, _ = register_user()

        response = test_client.post(
            "/posts",
            json={"content": "look", "imagePayload": png_payload, "videoPayload": mp4_payload},
            headers=auth_headers(token),
        )

        assert response.status_code == status.HTTP_201_CREATED
        post = response.json()["post"]
        assert post["image"].endswith(".image")
        assert post["video"].endswith(".video")

    def test_media_failure_still_creates_post(self, build_client, failing_relay, auth_headers, png_payload):
        client = build_client(media_relay=failing_relay)
        token = client.post(
            "/auth/register",
            json={"name": "Ann", "email": "ann@x.com", "password": "Secret123"},
        ).json()["token"]

        response = client.post(
            "/posts",
            json={"content": "hi", "imagePayload": png_payload},
            headers=auth_headers(token),
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["post"]["image"] is None

    def test_strict_post_media_policy(self, build_client, failing_relay, auth_headers, png_payload):
        client = build_client(
            media_relay=failing_relay, post_media_policy=MediaFailurePolicy.STRICT
        )
        token = client.post(
            "/auth/register",
            json={"name": "Ann", "email": "ann@x.com", "password": "Secret123"},
        ).json()["token"]

        response = client.post(
            "/posts",
            json={"content": "hi", "imagePayload": png_payload},
            headers=auth_headers(token),
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "MEDIA_UPLOAD_FAILED"

    def test_like_unknown_post(self, test_client, register_user, auth_headers):
        token, _ = register_user()

        response = test_client.post("/posts/missing/like", headers=auth_headers(token))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {
            "success": False,
            "message": "Post not found",
            "error": "NOT_FOUND",
        }

    def test_comments(self, test_client, register_user, auth_headers):
        ann_token, _ = register_user()
        bob_token, _ = register_user(name="Bob", email="bob@x.com")
        post = test_client.post(
            "/posts", json={"content": "hi"}, headers=auth_headers(ann_token)
        ).json()["post"]

        first = test_client.post(
            f"/posts/{post['id']}/comment", json={"content": "nice"}, headers=auth_headers(bob_token)
        )
        test_client.post(
            f"/posts/{post['id']}/comment", json={"content": "thanks"}, headers=auth_headers(ann_token)
        )

        assert first.status_code == status.HTTP_200_OK
        comment = first.json()["comment"]
        assert comment["content"] == "nice"
        assert comment["author"]["name"] == "Bob"
        assert "createdAt" in comment

        feed = test_client.get("/posts").json()["posts"]
        assert [c["content"] for c in feed[0]["comments"]] == ["nice", "thanks"]

    def test_comment_unknown_post(self, test_client, register_user, auth_headers):
        token, _ = register_user()

        response = test_client.post(
            "/posts/missing/comment", json={"content": "hi"}, headers=auth_headers(token)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_password_hash_never_returned(self, test_client, register_user, auth_headers):
        token, _ = register_user()
        post = test_client.post(
            "/posts", json={"content": "hi"}, headers=auth_headers(token)
        ).json()["post"]
        test_client.post(f"/posts/{post['id']}/comment", json={"content": "c"}, headers=auth_headers(token))

        bodies = [
            test_client.post("/auth/login", json={"email": "ann@x.com", "password": "Secret123"}),
            test_client.get("/auth/verify", headers=auth_headers(token)),
            test_client.get("/profile", headers=auth_headers(token)),
            test_client.get("/posts"),
        ]
        for response in bodies:
            assert "password" not in response.text.lower()
            assert "$2b$" not in response.text


class TestErrorEnvelope:
    """Unknown routes and methods keep their status with the standard envelope."""

    def test_unknown_route(self, test_client):
        response = test_client.get("/nope")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "HTTP_404"

    def test_wrong_method(self, test_client):
        response = test_client.delete("/posts")

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
        assert response.json()["error"] == "HTTP_405"
