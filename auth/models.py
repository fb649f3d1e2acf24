"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in board/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/ or board/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_APPLICANT = "applicant"
ROLE_COMPANY = "company"
ROLES: frozenset[str] = frozenset({ROLE_APPLICANT, ROLE_COMPANY})

PROVIDER_GOOGLE = "google"


@dataclass
class User:
    """A principal: an applicant or a company account.

    email is always stored trimmed and lowercase; the store enforces it unique.

    hashed_password is None for Google-only users (they have no local password).
    oauth_provider / oauth_subject are None until the user logs in via Google
    for the first time, at which point they are set (new account or link).
    """

    email: str
    role: str  # "applicant" | "company"
    display_name: str = ""
    id: int | None = None
    hashed_password: str | None = None  # None = OAuth-only user
    oauth_provider: str | None = None  # "google"
    oauth_subject: str | None = None  # provider's stable user ID
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Session:
    """A server-side login session.

    session_hash is HMAC-SHA256(SECRET_KEY, raw_id). The raw id lives only in
    the client's cookie; a copy of the sessions table cannot be replayed.
    """

    session_hash: str
    user_id: int
    expires_at: str  # ISO 8601, UTC
    created_at: str | None = None


@dataclass(frozen=True)
class ExternalIdentity:
    """A verified identity assertion from an OAuth provider."""

    provider: str
    subject: str
    email: str
    display_name: str = ""
