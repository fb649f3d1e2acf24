"""
tests/conftest.py -- Shared test fixtures for job board tests.

This module provides:
  - db_url: a fresh named shared-memory SQLite URI per test
  - settings / app / client: a fully wired app built by create_app() with the
    real lifespan, so tests hit the real stores and Authenticator
  - register_user: helper that registers an account and returns its Cookie header
  - company / applicant: one registered account of each role
  - fake_google: replaces app.state.oauth with an in-process stand-in

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process; the uuid in the
name keeps tests from seeing each other's rows.

Sessions are carried explicitly: register_user() clears the client's cookie jar
and returns {"Cookie": "session_id=..."}, so a single client can act as several
users in one test. An explicit Cookie header wins over the jar.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from auth.tokens import SESSION_COOKIE
from core.config import Settings

# Rate limits would trip across tests that share the "testclient" address.
# test_api_auth.py re-enables the limiter for the one test that checks it.
limiter.enabled = False

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
FRONTEND = "http://frontend.test"
DEFAULT_PASSWORD = "correct-horse-battery"


def make_settings(db_url: str, **overrides) -> Settings:
    values = dict(
        debug=True,
        secret_key=TEST_SECRET,
        database_url=db_url,
        bcrypt_rounds=4,
        frontend_url=FRONTEND,
        google_client_id="",
        google_client_secret="",
        oauth_default_role=None,
    )
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url() -> str:
    return f"sqlite:///file:jobboard_{uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(db_url: str) -> Settings:
    return make_settings(db_url)


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """TestClient with the real lifespan running for the duration of the test."""
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def register_user(client: TestClient) -> Callable[..., tuple[dict, dict]]:
    """Return register(email, role, ...) -> (user_json, cookie_headers)."""

    def register(
        email: str,
        role: str,
        password: str = DEFAULT_PASSWORD,
        display_name: str | None = None,
    ) -> tuple[dict, dict]:
        resp = client.post(
            "/api/auth/register",
            json={
                "email": email,
                "password": password,
                "displayName": display_name or email.split("@")[0],
                "role": role,
            },
        )
        assert resp.status_code == 201, resp.text
        session_id = resp.cookies[SESSION_COOKIE]
        client.cookies.clear()
        return resp.json()["user"], {"Cookie": f"{SESSION_COOKIE}={session_id}"}

    return register


@pytest.fixture
def company(register_user) -> tuple[dict, dict]:
    return register_user("hr@acme.it", "company", display_name="Acme HR")


@pytest.fixture
def applicant(register_user) -> tuple[dict, dict]:
    return register_user("mario@example.it", "applicant", display_name="Mario Rossi")


# ---------------------------------------------------------------------------
# Google OAuth stand-in
# ---------------------------------------------------------------------------


def _google_userinfo(
    sub: str = "google-sub-1",
    email: str = "giulia@gmail.com",
    name: str = "Giulia Bianchi",
    verified: bool = True,
) -> dict:
    return {"sub": sub, "email": email, "name": name, "email_verified": verified}


@pytest.fixture
def google_settings(db_url: str) -> Settings:
    return make_settings(db_url, google_client_id="client-id", google_client_secret="client-secret")


@pytest.fixture
def google_app(google_settings: Settings) -> FastAPI:
    return create_app(google_settings)


@pytest.fixture
def fake_google(google_app: FastAPI) -> MagicMock:
    """Replace the authlib registry with a fake whose client never touches the network.

    Tests set fake_google.client.authorize_access_token.return_value (or
    side_effect) to control what the callback receives.
    """
    google_client = MagicMock()
    google_client.authorize_redirect = AsyncMock(
        return_value=RedirectResponse("https://accounts.google.com/o/oauth2/v2/auth?state=xyz", status_code=302)
    )
    google_client.authorize_access_token = AsyncMock(return_value={"userinfo": _google_userinfo()})

    registry = MagicMock()
    registry.create_client.return_value = google_client
    registry.client = google_client
    google_app.state.oauth = registry
    return registry


@pytest.fixture
def google_client(google_app: FastAPI, fake_google: MagicMock) -> Generator[TestClient, None, None]:
    with TestClient(google_app, raise_server_exceptions=True) as c:
        yield c
