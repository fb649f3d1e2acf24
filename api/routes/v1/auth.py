"""
api/routes/v1/auth.py -- Registration, login, Google OAuth, and session endpoints.

Routes:
  POST /api/auth/register          -- create local account + session (201)
  POST /api/auth/login             -- email/password login; sets session cookie
  GET  /api/auth/google            -- redirect to Google's consent page
  GET  /api/auth/google/callback   -- finish Google login, redirect to frontend
  POST /api/auth/google/complete   -- first Google login: create account with chosen role
  GET  /api/auth/me                -- current user (requires session)
  POST /api/auth/logout            -- destroy session + clear cookie (requires session)

Security:
  POST /login and /register are rate-limited to 10 requests/minute per IP.
  Cache-Control: no-store on every response that sets a session cookie.
  Any session cookie presented to /login, /register or the Google flow is
  destroyed before a new one is issued, so a planted id never survives login.
  The Google flow reports failures as ?error= redirects because the browser,
  not the SPA, is on the other end.

The limiter sits BELOW @router: SlowAPIMiddleware skips decorated routes and
leaves the check to the wrapper, so the wrapper must be what gets registered.
No `from __future__ import annotations` for the same reason: FastAPI would
resolve string annotations against the wrapper module (slowapi), not this one.
"""

import logging
from dataclasses import asdict

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.limiter import limiter
from api.models import LoginRequest, MessageResponse, RegisterRequest, RoleSelectionRequest, UserEnvelope, UserOut
from auth.authenticator import Authenticator, RoleSelectionRequired
from auth.dependencies import get_current_user
from auth.models import PROVIDER_GOOGLE, ExternalIdentity, User
from auth.oauth import get_google_identity
from auth.tokens import SESSION_COOKIE, clear_session_cookie, set_session_cookie
from core.config import Settings
from core.errors import AuthenticationError, ConflictError

logger = logging.getLogger("jobboard.api.auth")

# Key in the Starlette (signed cookie) session holding a verified Google
# identity that is waiting for the user to pick a role.
_PENDING_OAUTH_KEY = "pending_oauth"

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _drop_previous_session(request: Request, authenticator: Authenticator) -> None:
    old = request.cookies.get(SESSION_COOKIE)
    if old:
        authenticator.logout(old)


def _session_response(request: Request, user: User, session_id: str, message: str, status_code: int) -> JSONResponse:
    settings: Settings = request.app.state.settings
    resp = JSONResponse(
        status_code=status_code,
        content=UserEnvelope(message=message, user=UserOut.from_domain(user)).model_dump(by_alias=True),
    )
    set_session_cookie(resp, session_id, settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _frontend_redirect(settings: Settings, path: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.frontend_url}{path}", status_code=302)


# ---------------------------------------------------------------------------
# Local accounts
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserEnvelope, status_code=201)
@limiter.limit("10/minute")
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and log it in within the same request."""
    authenticator: Authenticator = request.app.state.authenticator
    user, session_id = authenticator.register(body.email, body.password, body.display_name, body.role.value)
    _drop_previous_session(request, authenticator)
    return _session_response(request, user, session_id, "Registration successful.", 201)


@router.post("/auth/login", response_model=UserEnvelope)
@limiter.limit("10/minute")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Failures are 401 with a reason code: unknown_account, external_account
    (the account only has a Google identity), or bad_credentials.
    """
    authenticator: Authenticator = request.app.state.authenticator
    user, session_id = authenticator.login_local(body.email, body.password)
    _drop_previous_session(request, authenticator)
    return _session_response(request, user, session_id, "Login successful.", 200)


# ---------------------------------------------------------------------------
# Google OAuth
# ---------------------------------------------------------------------------


@router.get("/auth/google")
async def google_login(request: Request) -> RedirectResponse:
    """Redirect the browser to Google's authorization page."""
    settings: Settings = request.app.state.settings
    if not settings.google_enabled:
        return _frontend_redirect(settings, "/login?error=oauth_disabled")

    client = request.app.state.oauth.create_client(PROVIDER_GOOGLE)
    redirect_uri = settings.google_callback_url or str(request.url_for("google_callback"))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/google/callback", name="google_callback")
async def google_callback(request: Request) -> RedirectResponse:
    """Handle Google's callback and establish a session.

    Flow:
      1. Exchange the authorization code (authlib verifies state via session).
      2. Extract a verified identity -- ValueError if the email is unverified.
      3. Find, link, or create the account (see Authenticator.resolve_external).
      4. New account and no default role: park the identity, send the browser
         to the role-selection page.
      5. Otherwise set the session cookie and redirect to /oauth-callback.
    """
    settings: Settings = request.app.state.settings
    if not settings.google_enabled:
        return _frontend_redirect(settings, "/login?error=oauth_disabled")

    authenticator: Authenticator = request.app.state.authenticator
    client = request.app.state.oauth.create_client(PROVIDER_GOOGLE)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("Google token exchange failed")
        return _frontend_redirect(settings, "/login?error=oauth_failed")

    try:
        identity = get_google_identity(token)
    except ValueError:
        logger.warning("Google login rejected: unverified or missing email")
        return _frontend_redirect(settings, "/login?error=oauth_failed")

    try:
        user, session_id = authenticator.login_external(identity)
    except RoleSelectionRequired:
        request.session[_PENDING_OAUTH_KEY] = asdict(identity)
        return _frontend_redirect(settings, "/select-role")
    except ConflictError:
        return _frontend_redirect(settings, "/login?error=oauth_conflict")

    _drop_previous_session(request, authenticator)
    request.session.pop(_PENDING_OAUTH_KEY, None)
    resp = _frontend_redirect(settings, "/oauth-callback")
    set_session_cookie(resp, session_id, settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/google/complete", response_model=UserEnvelope, status_code=201)
def google_complete(request: Request, body: RoleSelectionRequest) -> JSONResponse:
    """Create the account for a pending Google identity with the chosen role."""
    pending = request.session.get(_PENDING_OAUTH_KEY)
    if not pending:
        raise AuthenticationError("No Google sign-in is waiting for a role.", code="no_pending_oauth")

    authenticator: Authenticator = request.app.state.authenticator
    user, session_id = authenticator.login_external(ExternalIdentity(**pending), role=body.role.value)
    request.session.pop(_PENDING_OAUTH_KEY, None)
    _drop_previous_session(request, authenticator)
    return _session_response(request, user, session_id, "Registration successful.", 201)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserEnvelope)
def me(current_user: User = Depends(get_current_user)) -> UserEnvelope:
    """Return the currently authenticated user."""
    return UserEnvelope(user=UserOut.from_domain(current_user))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Destroy the server-side session and clear the cookie."""
    authenticator: Authenticator = request.app.state.authenticator
    authenticator.logout(request.cookies[SESSION_COOKIE])
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_session_cookie(resp, request.app.state.settings)
    return resp
