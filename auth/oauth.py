"""
auth/oauth.py -- Authlib Google OAuth/OIDC client configuration.

build_oauth(settings) returns a fresh authlib registry. Nothing is registered
at import time: create_app() calls it once and stores the result on
app.state.oauth, which is also the seam tests use to substitute a fake.

Security notes:
  Email verification is mandatory. get_google_identity() raises ValueError if
  Google does not confirm the email is verified. The callback links accounts
  by email, so an unverified address could hijack an existing local account.

  OAuth state parameter (CSRF protection) is handled by authlib automatically
  via Starlette SessionMiddleware. The session stores the state between the
  authorization redirect and the callback.

Layer rule: no imports from api/ or board/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from auth.models import PROVIDER_GOOGLE, ExternalIdentity
from core.config import Settings

logger = logging.getLogger("jobboard.auth.oauth")

_GOOGLE_DISCOVERY_URL = "https://accounts.google.com/.well-known/openid-configuration"


def build_oauth(settings: Settings) -> OAuth:
    """Return an authlib registry with Google registered when configured."""
    oauth = OAuth()
    if settings.google_enabled:
        oauth.register(
            name=PROVIDER_GOOGLE,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            server_metadata_url=_GOOGLE_DISCOVERY_URL,
            client_kwargs={"scope": "openid email profile"},
        )
        logger.info("Google OAuth provider registered")
    else:
        logger.info("Google OAuth disabled (GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not set)")
    return oauth


def get_google_identity(token: dict) -> ExternalIdentity:
    """Extract a verified ExternalIdentity from Google's token response.

    The id_token claims (parsed by authlib into token["userinfo"]) carry sub,
    email, email_verified and name.

    Raises:
        ValueError: no userinfo, unverified email, or missing sub/email claim.
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError("google OAuth: no userinfo in token response")

    if not userinfo.get("email_verified", False):
        raise ValueError(
            "google OAuth: email is not verified. "
            "The provider must confirm email ownership before login is allowed."
        )

    email = userinfo.get("email")
    subject = userinfo.get("sub")
    if not email or not subject:
        raise ValueError("google OAuth: missing email or sub claim in userinfo")

    return ExternalIdentity(
        provider=PROVIDER_GOOGLE,
        subject=str(subject),
        email=email.strip().lower(),
        display_name=userinfo.get("name") or email.split("@", 1)[0],
    )
