"""
tests/test_authenticator.py -- Unit tests for registration, login and external identities.

The Authenticator is exercised against real in-memory stores; only the bcrypt
work factor is lowered.

Coverage:
  - register: normalized email, session issued, duplicate (any case) -> 409,
    missing fields and unknown role -> ValidationError
  - authenticate_local: unknown_account, external_account, bad_credentials
  - current_user: session bound to a missing user is destroyed
  - resolve_external: create once then reuse, link by email, conflicting link,
    role selection required, configured default role
"""

from __future__ import annotations

import pytest

from auth.authenticator import Authenticator, RoleSelectionRequired
from auth.models import PROVIDER_GOOGLE, ExternalIdentity
from auth.store import SessionStore, UserStore
from auth.tokens import PasswordHasher
from core.errors import AuthenticationError, ConflictError, ValidationError


def _identity(sub: str = "sub-1", email: str = "giulia@gmail.com") -> ExternalIdentity:
    return ExternalIdentity(provider=PROVIDER_GOOGLE, subject=sub, email=email, display_name="Giulia")


@pytest.fixture
def stores(db_url: str):
    users = UserStore(db_url)
    sessions = SessionStore(db_url, "authn-test-secret-0123456789abcdef")
    yield users, sessions
    sessions.close()
    users.close()


@pytest.fixture
def authn(stores) -> Authenticator:
    users, sessions = stores
    return Authenticator(users, sessions, PasswordHasher(rounds=4), session_ttl_seconds=3600)


class TestRegister:
    def test_register_creates_user_and_session(self, authn: Authenticator) -> None:
        user, sid = authn.register(" Acme@Example.IT ", "pw", "Acme HR", "company")
        assert user.id is not None
        assert user.email == "acme@example.it"
        assert user.role == "company"
        assert user.hashed_password and user.hashed_password != "pw"
        assert authn.current_user(sid).id == user.id

    def test_duplicate_email_any_case_conflicts(self, authn: Authenticator) -> None:
        authn.register("dup@example.it", "pw", "First", "applicant")
        with pytest.raises(ConflictError) as exc_info:
            authn.register("DUP@example.it", "pw", "Second", "company")
        assert exc_info.value.code == "email_taken"

    def test_missing_fields_are_listed(self, authn: Authenticator) -> None:
        with pytest.raises(ValidationError) as exc_info:
            authn.register("x@example.it", "", "  ", "company")
        fields = {d["field"] for d in exc_info.value.detail}
        assert fields == {"password", "displayName"}

    def test_unknown_role_rejected(self, authn: Authenticator) -> None:
        with pytest.raises(ValidationError):
            authn.register("x@example.it", "pw", "X", "admin")


class TestLocalLogin:
    def test_login_success_issues_new_session(self, authn: Authenticator) -> None:
        user, first_sid = authn.register("a@example.it", "pw", "A", "applicant")
        logged_in, sid = authn.login_local("A@EXAMPLE.IT", "pw")
        assert logged_in.id == user.id
        assert sid != first_sid

    def test_unknown_account(self, authn: Authenticator) -> None:
        with pytest.raises(AuthenticationError) as exc_info:
            authn.authenticate_local("ghost@example.it", "pw")
        assert exc_info.value.code == "unknown_account"

    def test_wrong_password(self, authn: Authenticator) -> None:
        authn.register("a@example.it", "pw", "A", "applicant")
        with pytest.raises(AuthenticationError) as exc_info:
            authn.authenticate_local("a@example.it", "nope")
        assert exc_info.value.code == "bad_credentials"

    def test_google_only_account_cannot_use_password(self, authn: Authenticator) -> None:
        authn.resolve_external(_identity(), role="applicant")
        with pytest.raises(AuthenticationError) as exc_info:
            authn.authenticate_local("giulia@gmail.com", "anything")
        assert exc_info.value.code == "external_account"


class TestSessions:
    def test_logout_invalidates_session(self, authn: Authenticator) -> None:
        _, sid = authn.register("a@example.it", "pw", "A", "applicant")
        authn.logout(sid)
        assert authn.current_user(sid) is None

    def test_no_cookie_is_anonymous(self, authn: Authenticator) -> None:
        assert authn.current_user(None) is None
        assert authn.current_user("") is None

    def test_session_for_missing_user_is_destroyed(self, authn: Authenticator, stores) -> None:
        _, sessions = stores
        sid = sessions.create(user_id=4242, ttl_seconds=3600)
        assert authn.current_user(sid) is None
        assert sessions.get(sid) is None


class TestExternalIdentity:
    def test_first_login_without_role_requires_selection(self, authn: Authenticator) -> None:
        with pytest.raises(RoleSelectionRequired) as exc_info:
            authn.resolve_external(_identity())
        assert exc_info.value.identity.subject == "sub-1"

    def test_create_once_then_reuse(self, authn: Authenticator) -> None:
        created = authn.resolve_external(_identity(), role="company")
        again = authn.resolve_external(_identity())
        assert again.id == created.id
        assert again.role == "company"
        assert created.hashed_password is None
        assert created.oauth_provider == PROVIDER_GOOGLE

    def test_default_role_is_used_when_configured(self, stores) -> None:
        users, sessions = stores
        authn = Authenticator(users, sessions, PasswordHasher(4), 3600, default_external_role="applicant")
        user, sid = authn.login_external(_identity())
        assert user.role == "applicant"
        assert authn.current_user(sid).id == user.id

    def test_links_to_existing_local_account_by_email(self, authn: Authenticator) -> None:
        local, _ = authn.register("giulia@gmail.com", "pw", "Giulia", "company")
        linked = authn.resolve_external(_identity())
        assert linked.id == local.id
        assert linked.oauth_subject == "sub-1"
        # Password login keeps working after linking.
        assert authn.authenticate_local("giulia@gmail.com", "pw").id == local.id

    def test_email_linked_to_other_identity_conflicts(self, authn: Authenticator) -> None:
        authn.resolve_external(_identity(sub="sub-1"), role="applicant")
        with pytest.raises(ConflictError) as exc_info:
            authn.resolve_external(_identity(sub="sub-2"), role="applicant")
        assert exc_info.value.code == "oauth_conflict"
