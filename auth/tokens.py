"""
auth/tokens.py -- Password hashing, session identifiers, and the session cookie.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). The work factor is a
       constructor argument fed from Settings.bcrypt_rounds, so deployments can
       raise it and tests can drop it to the minimum (4) without code changes.
       Hashing is an explicit PasswordHasher.hash() call at the call site --
       nothing hashes implicitly on save.

       A malformed stored digest is an infrastructure fault, not a wrong
       password: verify() raises InfrastructureError instead of returning False.

  Session ids: secrets.token_urlsafe(32) gives 256 bits of entropy. The store
       keeps HMAC-SHA256(SECRET_KEY, raw_id) so lookup is O(1) and a copy of
       the sessions table is useless without SECRET_KEY. bcrypt's intentional
       slowness is unnecessary for high-entropy values.

Layer rule: no imports from api/ or board/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

import bcrypt

from core.config import Settings
from core.errors import InfrastructureError, ValidationError

logger = logging.getLogger("jobboard.auth")

SESSION_COOKIE = "session_id"

# bcrypt only looks at the first 72 bytes; bcrypt>=5 raises on longer input.
_BCRYPT_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


class PasswordHasher:
    """Salted adaptive hash + verify.

    Usage:
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
        digest = hasher.hash("s3cret")
        hasher.verify("s3cret", digest)  # True
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of plain. Every call uses a fresh salt."""
        raw = plain.encode("utf-8")
        if len(raw) > _BCRYPT_MAX_BYTES:
            raise ValidationError(
                "Request validation failed.",
                detail=[{"field": "password", "message": f"Password must be at most {_BCRYPT_MAX_BYTES} bytes."}],
            )
        try:
            return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except (ValueError, TypeError) as exc:
            logger.exception("bcrypt hashing failed")
            raise InfrastructureError("Password hashing failed.") from exc

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches the digest.

        Input longer than bcrypt's limit can never have been hashed, so it is a
        mismatch rather than an error.
        """
        raw = plain.encode("utf-8")
        if len(raw) > _BCRYPT_MAX_BYTES:
            return False
        try:
            return bcrypt.checkpw(raw, hashed.encode("utf-8"))
        except (ValueError, TypeError) as exc:
            logger.error("Stored password digest could not be parsed")
            raise InfrastructureError("Password verification failed.") from exc


# ---------------------------------------------------------------------------
# Session identifiers
# ---------------------------------------------------------------------------


def generate_session_id() -> str:
    """Return a new opaque session identifier (URL-safe, 256-bit)."""
    return secrets.token_urlsafe(32)


def hash_session_id(raw_id: str, secret_key: str) -> str:
    """Return HMAC-SHA256(secret_key, raw_id) as a hex string."""
    return hmac.new(secret_key.encode(), raw_id.encode(), hashlib.sha256).hexdigest()


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, session_id: str, settings: Settings) -> None:
    """Write the session id as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the server-side session TTL so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=session_id,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.session_ttl_seconds,
    )


def clear_session_cookie(response, settings: Settings) -> None:
    response.delete_cookie(
        SESSION_COOKIE,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
    )
