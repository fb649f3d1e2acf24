"""
tests/test_api_google.py -- Integration tests for the Google OAuth routes.

The authlib registry on app.state.oauth is replaced by the fake_google fixture,
so no request leaves the process. follow_redirects=False is essential: the
assertions are on redirect *locations* pointing at the frontend, which the
client could not follow anyway.

Coverage:
  - /auth/google: redirect to the provider, or back to the frontend when disabled
  - callback: new user -> role selection, returning user -> session + /oauth-callback,
    link to an existing local account by email, token/identity failures,
    email already linked to another Google account
  - /auth/google/complete: creates the account with the chosen role, 401 when
    nothing is pending
"""

from __future__ import annotations

from unittest.mock import MagicMock

from authlib.integrations.starlette_client import OAuthError
from fastapi.testclient import TestClient

from auth.tokens import SESSION_COOKIE

FRONTEND = "http://frontend.test"
CALLBACK = "/api/auth/google/callback?code=abc&state=xyz"


def _userinfo(sub: str = "google-sub-1", email: str = "giulia@gmail.com", verified: bool = True) -> dict:
    return {"sub": sub, "email": email, "name": "Giulia Bianchi", "email_verified": verified}


def _callback(client: TestClient):
    return client.get(CALLBACK, follow_redirects=False)


def _complete(client: TestClient, role: str):
    return client.post("/api/auth/google/complete", json={"role": role})


class TestStart:
    def test_redirects_to_google(self, google_client: TestClient, fake_google: MagicMock) -> None:
        resp = google_client.get("/api/auth/google", follow_redirects=False)
        assert resp.status_code == 302
        assert resp.headers["location"].startswith("https://accounts.google.com/")
        _request, redirect_uri = fake_google.client.authorize_redirect.call_args.args
        assert redirect_uri.endswith("/api/auth/google/callback")

    def test_disabled_redirects_back_to_frontend(self, client: TestClient) -> None:
        resp = client.get("/api/auth/google", follow_redirects=False)
        assert resp.status_code == 302
        assert resp.headers["location"] == f"{FRONTEND}/login?error=oauth_disabled"

    def test_disabled_callback_redirects_back_to_frontend(self, client: TestClient) -> None:
        resp = client.get(CALLBACK, follow_redirects=False)
        assert resp.headers["location"] == f"{FRONTEND}/login?error=oauth_disabled"


class TestFirstLogin:
    def test_new_user_is_sent_to_role_selection(self, google_client: TestClient) -> None:
        resp = _callback(google_client)
        assert resp.status_code == 302
        assert resp.headers["location"] == f"{FRONTEND}/select-role"
        assert SESSION_COOKIE not in resp.cookies

    def test_complete_creates_account_with_role(self, google_client: TestClient) -> None:
        _callback(google_client)
        resp = _complete(google_client, "company")
        assert resp.status_code == 201, resp.text
        user = resp.json()["user"]
        assert user["email"] == "giulia@gmail.com"
        assert user["displayName"] == "Giulia Bianchi"
        assert user["role"] == "company"
        assert resp.cookies[SESSION_COOKIE]

        me = google_client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["id"] == user["id"]

    def test_pending_identity_is_consumed(self, google_client: TestClient) -> None:
        _callback(google_client)
        assert _complete(google_client, "applicant").status_code == 201
        assert _complete(google_client, "company").status_code == 401

    def test_complete_without_pending_is_401(self, google_client: TestClient) -> None:
        resp = _complete(google_client, "applicant")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "no_pending_oauth"

    def test_complete_rejects_unknown_role(self, google_client: TestClient) -> None:
        _callback(google_client)
        assert _complete(google_client, "admin").status_code == 400

    def test_complete_accepts_user_type(self, google_client: TestClient) -> None:
        _callback(google_client)
        resp = google_client.post("/api/auth/google/complete", json={"userType": "azienda"})
        assert resp.status_code == 201, resp.text
        user = resp.json()["user"]
        assert user["role"] == "company"
        assert user["userType"] == "azienda"


class TestReturningUser:
    def test_second_login_gets_session_directly(self, google_client: TestClient) -> None:
        _callback(google_client)
        created = _complete(google_client, "applicant").json()["user"]
        google_client.cookies.clear()

        resp = _callback(google_client)
        assert resp.status_code == 302
        assert resp.headers["location"] == f"{FRONTEND}/oauth-callback"
        assert resp.headers["cache-control"] == "no-store"
        session_id = resp.cookies[SESSION_COOKIE]

        google_client.cookies.clear()
        me = google_client.get("/api/auth/me", headers={"Cookie": f"{SESSION_COOKIE}={session_id}"})
        assert me.json()["user"]["id"] == created["id"]
        assert me.json()["user"]["role"] == "applicant"

    def test_links_existing_local_account(self, google_client: TestClient) -> None:
        registered = google_client.post(
            "/api/auth/register",
            json={"email": "giulia@gmail.com", "password": "pw", "displayName": "Giulia", "role": "company"},
        ).json()["user"]
        google_client.cookies.clear()

        resp = _callback(google_client)
        assert resp.headers["location"] == f"{FRONTEND}/oauth-callback"
        google_client.cookies.clear()
        me = google_client.get("/api/auth/me", headers={"Cookie": f"{SESSION_COOKIE}={resp.cookies[SESSION_COOKIE]}"})
        assert me.json()["user"]["id"] == registered["id"]
        assert me.json()["user"]["role"] == "company"

    def test_email_linked_to_other_google_account(self, google_client: TestClient, fake_google: MagicMock) -> None:
        _callback(google_client)
        _complete(google_client, "applicant")
        google_client.cookies.clear()

        fake_google.client.authorize_access_token.return_value = {"userinfo": _userinfo(sub="google-sub-2")}
        resp = _callback(google_client)
        assert resp.headers["location"] == f"{FRONTEND}/login?error=oauth_conflict"


class TestDefaultRole:
    def test_configured_default_role_skips_selection(self, google_app, google_client: TestClient) -> None:
        google_app.state.authenticator.default_external_role = "applicant"
        resp = _callback(google_client)
        assert resp.headers["location"] == f"{FRONTEND}/oauth-callback"
        assert resp.cookies[SESSION_COOKIE]


class TestFailures:
    def test_token_exchange_failure(self, google_client: TestClient, fake_google: MagicMock) -> None:
        fake_google.client.authorize_access_token.side_effect = OAuthError(error="access_denied")
        resp = _callback(google_client)
        assert resp.status_code == 302
        assert resp.headers["location"] == f"{FRONTEND}/login?error=oauth_failed"

    def test_unverified_email_rejected(self, google_client: TestClient, fake_google: MagicMock) -> None:
        fake_google.client.authorize_access_token.return_value = {"userinfo": _userinfo(verified=False)}
        resp = _callback(google_client)
        assert resp.headers["location"] == f"{FRONTEND}/login?error=oauth_failed"

    def test_missing_userinfo_rejected(self, google_client: TestClient, fake_google: MagicMock) -> None:
        fake_google.client.authorize_access_token.return_value = {"access_token": "t"}
        resp = _callback(google_client)
        assert resp.headers["location"] == f"{FRONTEND}/login?error=oauth_failed"
