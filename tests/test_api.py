"""API endpoint tests."""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse

from sqlalchemy import func, select

from mediahub.db.base import utcnow
from mediahub.models.session import UserSession
from mediahub.models.upload import FileUpload, UploadStatus
from mediahub.models.user import User
from mediahub.services.session_service import SessionService
from mediahub.services.upload_service import UploadService


def _set_cookie_headers(response, name: str) -> list[str]:
    return [h for h in response.headers.get_list("set-cookie") if h.startswith(f"{name}=")]


def _count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        """Test that health check returns healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"


class TestGoogleLogin:
    """Tests for the OAuth sign-in flow."""

    def _start(self, client):
        response = client.get("/api/v1/auth/google", follow_redirects=False)
        assert response.status_code == 302
        query = parse_qs(urlparse(response.headers["location"]).query)
        return response, query["state"][0]

    def test_start_redirects_with_state_and_pkce(self, client):
        """Test that starting the login stores state and verifier cookies."""
        response, state = self._start(client)

        assert response.headers["location"].startswith("https://idp.test/authorize")
        assert "code_challenge_method=S256" in response.headers["location"]
        assert _set_cookie_headers(response, "google_oauth_state")
        assert _set_cookie_headers(response, "google_oauth_code_verifier")
        assert client.cookies.get("google_oauth_state") == state

    def test_callback_creates_user_and_session(self, client, db_session, identity_provider):
        """Test a full first login."""
        _, state = self._start(client)

        response = client.get(
            "/api/v1/auth/google/callback",
            params={"code": "auth-code", "state": state},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/"

        session_cookie = _set_cookie_headers(response, "session")
        assert len(session_cookie) == 1
        attributes = session_cookie[0].lower()
        assert "httponly" in attributes
        assert "samesite=lax" in attributes
        assert "path=/" in attributes
        assert "expires=" in attributes
        assert "secure" not in attributes

        cleared = _set_cookie_headers(response, "google_oauth_state")
        assert cleared and "max-age=0" in cleared[0].lower()

        assert identity_provider.exchanges[0][0] == "auth-code"
        assert _count(db_session, User) == 1
        assert _count(db_session, UserSession) == 1

        me = client.get("/api/v1/auth/me")
        assert me.status_code == 200
        assert me.json()["email"] == "test@example.com"
        assert me.json()["tier"] == "FREE"

    def test_second_login_reuses_user(self, client, db_session):
        """Test that logging in twice with one identity keeps one user."""
        for _ in range(2):
            _, state = self._start(client)
            response = client.get(
                "/api/v1/auth/google/callback",
                params={"code": "auth-code", "state": state},
                follow_redirects=False,
            )
            assert response.status_code == 303

        assert _count(db_session, User) == 1
        assert _count(db_session, UserSession) == 2

    def test_callback_state_mismatch(self, client, db_session, identity_provider):
        """Test that a forged state is rejected before any exchange."""
        self._start(client)

        response = client.get(
            "/api/v1/auth/google/callback",
            params={"code": "auth-code", "state": "forged"},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"].startswith("/login?error=")
        assert identity_provider.exchanges == []
        assert _count(db_session, UserSession) == 0

    def test_callback_state_differs_in_one_character(self, client, identity_provider):
        """Test that a state of the right length but wrong content is rejected."""
        _, state = self._start(client)
        tampered = state[:-1] + ("A" if state[-1] != "A" else "B")

        response = client.get(
            "/api/v1/auth/google/callback",
            params={"code": "auth-code", "state": tampered},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert "error=State+mismatch" in response.headers["location"]
        assert identity_provider.exchanges == []

    def test_callback_non_ascii_state(self, client, identity_provider):
        """Test that a non-ASCII state is rejected rather than erroring."""
        self._start(client)

        response = client.get(
            "/api/v1/auth/google/callback",
            params={"code": "auth-code", "state": "état"},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert "error=State+mismatch" in response.headers["location"]
        assert identity_provider.exchanges == []

    def test_callback_without_cookies(self, client):
        """Test that a callback with no stored state is rejected."""
        response = client.get(
            "/api/v1/auth/google/callback",
            params={"code": "auth-code", "state": "anything"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert "error=Invalid+OAuth+state" in response.headers["location"]

    def test_callback_provider_failure(self, client, db_session, identity_provider):
        """Test that a failed code exchange redirects back to login."""
        identity_provider.fail = True
        _, state = self._start(client)

        response = client.get(
            "/api/v1/auth/google/callback",
            params={"code": "auth-code", "state": state},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert "error=Authentication+failed" in response.headers["location"]
        assert not _set_cookie_headers(response, "session")
        assert _count(db_session, User) == 0


class TestSessions:
    """Tests for session-authenticated endpoints."""

    def test_me_requires_session(self, client):
        """Test that /me without a cookie is 401."""
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401

    def test_me_with_unknown_token(self, client):
        """Test that an unknown token is 401."""
        response = client.get("/api/v1/auth/me", headers={"Cookie": "session=deadbeef"})
        assert response.status_code == 401

    def test_me_with_session(self, client, test_user, auth_headers):
        """Test getting current user info."""
        response = client.get("/api/v1/auth/me", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == test_user.id
        assert data["email"] == test_user.email
        # A fresh session is not renewed
        assert not _set_cookie_headers(response, "session")

    def test_renewal_refreshes_cookie(self, client, db_session, test_settings, test_user):
        """Test that a session close to expiry is extended and the cookie re-sent."""
        twenty_days_ago = utcnow() - timedelta(days=20)
        session = SessionService(db_session, test_settings, clock=lambda: twenty_days_ago).create_session(test_user.id)
        token = session.id

        response = client.get("/api/v1/auth/me", headers={"Cookie": f"session={token}"})

        assert response.status_code == 200
        refreshed = _set_cookie_headers(response, "session")
        assert len(refreshed) == 1
        assert refreshed[0].startswith(f"session={token}")

        stored = db_session.get(UserSession, token)
        db_session.refresh(stored)
        assert stored.expires_at > utcnow() + timedelta(days=29)

    def test_expired_session_is_rejected_and_deleted(self, client, db_session, test_settings, test_user):
        """Test that an expired session is 401 and removed."""
        long_ago = utcnow() - timedelta(days=31)
        token = SessionService(db_session, test_settings, clock=lambda: long_ago).create_session(test_user.id).id

        response = client.get("/api/v1/auth/me", headers={"Cookie": f"session={token}"})

        assert response.status_code == 401
        assert _count(db_session, UserSession) == 0

    def test_logout(self, client, db_session, auth_headers):
        """Test that logout deletes the session and clears the cookie."""
        response = client.post("/api/v1/auth/logout", headers=auth_headers)

        assert response.status_code == 204
        cleared = _set_cookie_headers(response, "session")
        assert cleared and "max-age=0" in cleared[0].lower()
        assert _count(db_session, UserSession) == 0

        assert client.get("/api/v1/auth/me", headers=auth_headers).status_code == 401

    def test_logout_without_session(self, client):
        """Test that logout is safe to call when not logged in."""
        response = client.post("/api/v1/auth/logout")
        assert response.status_code == 204

    def test_logout_all(self, client, db_session, login, test_user, other_user):
        """Test that logout-all ends every session of the user only."""
        first = login(test_user)
        second = login(test_user)
        foreign = login(other_user)

        response = client.post("/api/v1/auth/logout-all", headers=first)

        assert response.status_code == 204
        assert client.get("/api/v1/auth/me", headers=second).status_code == 401
        assert client.get("/api/v1/auth/me", headers=foreign).status_code == 200

    def test_logout_all_requires_session(self, client):
        """Test that logout-all is 401 when not logged in."""
        assert client.post("/api/v1/auth/logout-all").status_code == 401


class TestUploads:
    """Tests for upload endpoints."""

    def _request(self, client, headers, **overrides):
        body = {"file_name": "holiday photo.jpg", "content_type": "image/jpeg", "size": 2048}
        body.update(overrides)
        return client.post("/api/v1/uploads", json=body, headers=headers)

    def test_request_upload(self, client, db_session, mock_blob_storage, test_user, auth_headers):
        """Test requesting a presigned upload URL."""
        response = self._request(client, auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["key"].startswith(f"uploads/{test_user.id}/")
        assert data["key"].endswith("-holiday_photo.jpg")
        assert data["upload_url"].startswith("http://mock-storage/")
        assert data["expires_in"] == 600

        assert mock_blob_storage.sign_calls == [(data["key"], "image/jpeg", 2048)]
        upload = db_session.get(FileUpload, data["intent_id"])
        assert upload.status == UploadStatus.PENDING
        assert upload.original_name == "holiday photo.jpg"

    def test_request_upload_requires_session(self, client, mock_blob_storage):
        """Test that anonymous upload requests are 401."""
        response = self._request(client, {})
        assert response.status_code == 401
        assert mock_blob_storage.sign_calls == []

    def test_request_upload_too_large(self, client, db_session, mock_blob_storage, test_settings, auth_headers):
        """Test that an oversized upload is rejected before signing or recording."""
        response = self._request(client, auth_headers, size=test_settings.MAX_FILE_SIZE + 1)

        assert response.status_code == 413
        assert mock_blob_storage.sign_calls == []
        assert _count(db_session, FileUpload) == 0

    def test_request_upload_unsupported_type(self, client, mock_blob_storage, auth_headers):
        """Test that non-media content types are rejected."""
        response = self._request(client, auth_headers, content_type="application/x-msdownload")
        assert response.status_code == 400
        assert mock_blob_storage.sign_calls == []

    def test_request_upload_invalid_size(self, client, auth_headers):
        """Test that a non-positive size fails request validation."""
        assert self._request(client, auth_headers, size=0).status_code == 422

    def test_request_upload_storage_unavailable(self, client, db_session, mock_blob_storage, auth_headers):
        """Test that a signing failure is 502 and leaves no intent behind."""
        mock_blob_storage.fail_signing = True

        response = self._request(client, auth_headers)

        assert response.status_code == 502
        assert _count(db_session, FileUpload) == 0

    def test_confirm_upload(self, client, auth_headers):
        """Test confirming an upload, twice."""
        intent_id = self._request(client, auth_headers).json()["intent_id"]

        response = client.post(f"/api/v1/uploads/{intent_id}/confirm", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "UPLOADED"

        again = client.post(f"/api/v1/uploads/{intent_id}/confirm", headers=auth_headers)
        assert again.status_code == 200
        assert again.json()["status"] == "UPLOADED"

    def test_confirm_other_users_upload(self, client, db_session, login, other_user, auth_headers):
        """Test that confirming someone else's upload is 403 and changes nothing."""
        intent_id = self._request(client, auth_headers).json()["intent_id"]

        response = client.post(f"/api/v1/uploads/{intent_id}/confirm", headers=login(other_user))

        assert response.status_code == 403
        assert db_session.get(FileUpload, intent_id).status == UploadStatus.PENDING

    def test_confirm_missing_upload(self, client, auth_headers):
        """Test confirming an unknown intent."""
        response = client.post("/api/v1/uploads/9999/confirm", headers=auth_headers)
        assert response.status_code == 404

    def test_confirm_after_processing_started(
        self, client, db_session, mock_blob_storage, test_settings, auth_headers
    ):
        """Test that confirming an intent already past UPLOADED is a conflict."""
        intent_id = self._request(client, auth_headers).json()["intent_id"]
        client.post(f"/api/v1/uploads/{intent_id}/confirm", headers=auth_headers)
        UploadService(db_session, mock_blob_storage, test_settings).update_status(intent_id, UploadStatus.PROCESSING)
        UploadService(db_session, mock_blob_storage, test_settings).update_status(intent_id, UploadStatus.COMPLETED)

        response = client.post(f"/api/v1/uploads/{intent_id}/confirm", headers=auth_headers)

        assert response.status_code == 409

    def test_list_uploads(self, client, login, other_user, auth_headers):
        """Test that users see only their own uploads, filterable by status."""
        first = self._request(client, auth_headers, file_name="a.jpg").json()["intent_id"]
        self._request(client, auth_headers, file_name="b.mp4", content_type="video/mp4")
        self._request(client, login(other_user), file_name="c.jpg")
        client.post(f"/api/v1/uploads/{first}/confirm", headers=auth_headers)

        response = client.get("/api/v1/uploads", headers=auth_headers)
        assert response.status_code == 200
        names = [u["original_name"] for u in response.json()]
        assert sorted(names) == ["a.jpg", "b.mp4"]

        uploaded = client.get("/api/v1/uploads", params={"status": "UPLOADED"}, headers=auth_headers)
        assert [u["id"] for u in uploaded.json()] == [first]

    def test_get_upload(self, client, login, other_user, auth_headers):
        """Test fetching a single upload, hidden from other users."""
        intent_id = self._request(client, auth_headers).json()["intent_id"]

        response = client.get(f"/api/v1/uploads/{intent_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["size_bytes"] == 2048

        assert client.get(f"/api/v1/uploads/{intent_id}", headers=login(other_user)).status_code == 404

    def test_stale_uploads_admin_only(self, client, db_session, login, test_user, admin_user, auth_headers):
        """Test that only admins can list stale pending uploads."""
        stale = FileUpload(
            user_id=test_user.id,
            original_name="old.jpg",
            storage_key=f"uploads/{test_user.id}/1-old.jpg",
            content_type="image/jpeg",
            size_bytes=10,
            created_at=utcnow() - timedelta(hours=3),
            updated_at=utcnow() - timedelta(hours=3),
        )
        db_session.add(stale)
        db_session.commit()
        self._request(client, auth_headers)

        assert client.get("/api/v1/uploads/stale", headers=auth_headers).status_code == 403

        response = client.get("/api/v1/uploads/stale", headers=login(admin_user))
        assert response.status_code == 200
        assert [u["original_name"] for u in response.json()] == ["old.jpg"]
