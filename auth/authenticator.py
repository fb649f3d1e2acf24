"""
auth/authenticator.py -- Credential checks, registration, and session establishment.

Turns a presented credential into either (User, raw_session_id) or a typed
error from core/errors.py. Two entry protocols:

  Local:    email + password, checked against the bcrypt digest.
  External: a verified ExternalIdentity from auth/oauth.py (Google).

Registration is the local protocol's front door: it validates, hashes the
password explicitly, persists, then takes the same session-establishing path
as a successful login.

The Authenticator owns no configuration lookups of its own. create_app()
builds it once from Settings and stores it on app.state.

Layer rule: no imports from api/ or board/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import ROLES, ExternalIdentity, User
from auth.store import SessionStore, UserStore, normalize_email
from auth.tokens import PasswordHasher
from core.errors import AuthenticationError, ConflictError, ValidationError

logger = logging.getLogger("jobboard.auth")


class RoleSelectionRequired(Exception):
    """A first-time external login needs an explicit role before the account exists.

    Not an error for the client: the route parks `identity` in the signed OAuth
    session and sends the browser to the role-selection page.
    """

    def __init__(self, identity: ExternalIdentity) -> None:
        super().__init__(f"role selection required for new {identity.provider} account")
        self.identity = identity


class Authenticator:
    """Local and external login, registration, and session lifecycle.

    Usage:
        authn = Authenticator(users, sessions, PasswordHasher(10), session_ttl_seconds=86400)
        user, session_id = authn.register("a@b.it", "pw", "Acme HR", "company")
        user, session_id = authn.login_local("A@B.it", "pw")
        authn.logout(session_id)
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        hasher: PasswordHasher,
        session_ttl_seconds: int,
        default_external_role: str | None = None,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.hasher = hasher
        self.session_ttl_seconds = session_ttl_seconds
        self.default_external_role = default_external_role

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self, user: User) -> str:
        return self.sessions.create(user.id, self.session_ttl_seconds)

    def current_user(self, session_id: str | None) -> User | None:
        """Resolve a raw session id to its User, or None if unauthenticated.

        A session whose user no longer exists is destroyed and treated as
        unauthenticated.
        """
        if not session_id:
            return None
        user_id = self.sessions.resolve(session_id)
        if user_id is None:
            return None
        user = self.users.get_by_id(user_id)
        if user is None:
            logger.warning("Session bound to missing user %s destroyed", user_id)
            self.sessions.delete(session_id)
        return user

    def logout(self, session_id: str) -> None:
        self.sessions.delete(session_id)

    # ------------------------------------------------------------------
    # Local credentials
    # ------------------------------------------------------------------

    def authenticate_local(self, email: str, password: str) -> User:
        """Check an email/password pair. Raises AuthenticationError with a reason code."""
        user = self.users.get_by_email(email)
        if user is None:
            logger.info("Login rejected: unknown account")
            raise AuthenticationError("Email is not registered.", code="unknown_account")
        if user.hashed_password is None:
            logger.info("Login rejected: user %s has no local password", user.id)
            raise AuthenticationError(
                "This account was registered with Google. Sign in with Google instead.",
                code="external_account",
            )
        if not self.hasher.verify(password, user.hashed_password):
            logger.info("Login rejected: bad password for user %s", user.id)
            raise AuthenticationError("Wrong password.", code="bad_credentials")
        return user

    def login_local(self, email: str, password: str) -> tuple[User, str]:
        user = self.authenticate_local(email, password)
        return user, self.start_session(user)

    def register(self, email: str, password: str, display_name: str, role: str) -> tuple[User, str]:
        """Create a local account and log it in.

        Raises ValidationError for missing fields or an unknown role, and
        ConflictError if the email is already registered (any letter case).
        """
        email = normalize_email(email or "")
        display_name = (display_name or "").strip()
        missing = [
            name
            for name, value in (("email", email), ("password", password), ("displayName", display_name), ("role", role))
            if not value
        ]
        if missing:
            raise ValidationError.for_fields(missing)
        if role not in ROLES:
            raise ValidationError(
                "Request validation failed.",
                detail=[{"field": "role", "message": f"Role must be one of: {', '.join(sorted(ROLES))}."}],
            )

        if self.users.get_by_email(email) is not None:
            raise ConflictError("A user with this email already exists.", code="email_taken")

        new_user = User(
            email=email,
            role=role,
            display_name=display_name,
            hashed_password=self.hasher.hash(password),
        )
        try:
            user_id = self.users.create_user(new_user)
        except IntegrityError as exc:
            # Lost the race against a concurrent registration with the same email.
            raise ConflictError("A user with this email already exists.", code="email_taken") from exc

        user = self.users.get_by_id(user_id)
        logger.info("Registered %s user %s", role, user_id)
        return user, self.start_session(user)

    # ------------------------------------------------------------------
    # External identities
    # ------------------------------------------------------------------

    def resolve_external(self, identity: ExternalIdentity, role: str | None = None) -> User:
        """Find or create the User for a verified external identity.

        Flow:
          1. Known (provider, subject): return it unchanged.
          2. Email matches an unlinked local account: link the identity to it.
          3. Otherwise create a new account with `role`, falling back to the
             configured default. With neither, raise RoleSelectionRequired.
        """
        user = self.users.get_by_oauth(identity.provider, identity.subject)
        if user is not None:
            return user

        existing = self.users.get_by_email(identity.email)
        if existing is not None:
            if existing.oauth_subject is not None or not self.users.link_oauth(
                existing.id, identity.provider, identity.subject
            ):
                logger.warning("External login rejected: email of user %s linked to another identity", existing.id)
                raise ConflictError(
                    "This email is already linked to a different external account.",
                    code="oauth_conflict",
                )
            logger.info("Linked %s identity to existing user %s", identity.provider, existing.id)
            return self.users.get_by_id(existing.id)

        role = role or self.default_external_role
        if role is None:
            raise RoleSelectionRequired(identity)
        if role not in ROLES:
            raise ValidationError(
                "Request validation failed.",
                detail=[{"field": "role", "message": f"Role must be one of: {', '.join(sorted(ROLES))}."}],
            )

        new_user = User(
            email=identity.email,
            role=role,
            display_name=identity.display_name,
            oauth_provider=identity.provider,
            oauth_subject=identity.subject,
        )
        try:
            user_id = self.users.create_user(new_user)
        except IntegrityError as exc:
            # A concurrent callback for the same identity created the row first.
            user = self.users.get_by_oauth(identity.provider, identity.subject)
            if user is None:
                raise ConflictError(
                    "A user with this email already exists.",
                    code="email_taken",
                ) from exc
            return user
        logger.info("Created %s user %s from %s login", role, user_id, identity.provider)
        return self.users.get_by_id(user_id)

    def login_external(self, identity: ExternalIdentity, role: str | None = None) -> tuple[User, str]:
        user = self.resolve_external(identity, role)
        return user, self.start_session(user)
