"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as board/store.py).
UserStore and SessionStore are the repositories; _row_to_user /
_row_to_session are the mappers. Route and dependency code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) closes the duplicate-registration race: two concurrent
  registrations with the same address both pass the pre-check, only one
  insert succeeds, the other raises IntegrityError.

  UNIQUE(oauth_provider, oauth_subject) is safe to declare in SQL here: rows
  without an external identity hold NULL in both columns, and NULLs never
  collide, so any number of local-only users can coexist.

  Session ids are stored only as HMAC-SHA256(SECRET_KEY, raw_id).

Layer rule: no imports from api/ or board/.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, text
from sqlalchemy.engine import Engine

from auth.models import Session, User
from auth.tokens import generate_session_id, hash_session_id
from core.db import create_store_engine, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),  # always lowercase
    Column("display_name", String(255), nullable=False, server_default=""),
    Column("hashed_password", Text),  # NULL for OAuth-only users
    Column("role", String(30), nullable=False),
    Column("oauth_provider", String(30)),
    Column("oauth_subject", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("oauth_provider", "oauth_subject", name="uq_user_oauth"),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_hash", String(64), nullable=False, unique=True),  # HMAC-SHA256 hex
    Column("user_id", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///jobboard.db")
        uid = store.create_user(User(email="a@b.it", role="company", hashed_password=digest))
        user = store.get_by_email("A@B.it")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url, _metadata)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        The email is normalized before insert. Raises
        sqlalchemy.exc.IntegrityError if the email (or the OAuth identity) is
        already taken -- the Authenticator turns that into ConflictError.
        """
        now = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=normalize_email(user.email),
                    display_name=user.display_name or "",
                    hashed_password=user.hashed_password,
                    role=user.role,
                    oauth_provider=user.oauth_provider,
                    oauth_subject=user.oauth_subject,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email, case-insensitively. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_many(self, user_ids: Iterable[int]) -> dict[int, User]:
        """Return {id: User} for the given ids. Missing ids are simply absent."""
        ids = set(user_ids)
        if not ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(ids))).fetchall()
        return {r.id: _row_to_user(r) for r in rows}

    def get_by_oauth(self, provider: str, subject: str) -> User | None:
        """Look up a user by (oauth_provider, oauth_subject) pair."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.oauth_provider == provider) & (_users.c.oauth_subject == subject))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def link_oauth(self, user_id: int, provider: str, subject: str) -> bool:
        """Attach an external identity to an existing local account.

        Only updates rows that are not linked yet, so a concurrent link to a
        different subject cannot be overwritten. Returns True if a row changed.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.oauth_subject.is_(None)))
                .values(oauth_provider=provider, oauth_subject=subject, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """Server-side session records keyed by the HMAC of an opaque id.

    Usage:
        sessions = SessionStore(db_url, secret_key)
        raw_id = sessions.create(user_id, ttl_seconds=86400)   # goes in the cookie
        sessions.resolve(raw_id)                               # -> user_id or None
        sessions.delete(raw_id)
    """

    def __init__(self, db_url: str, secret_key: str) -> None:
        self.engine: Engine = create_store_engine(db_url, _metadata)
        self._secret_key = secret_key

    def create(self, user_id: int, ttl_seconds: int) -> str:
        """Create a session for user_id and return the raw id (never stored)."""
        raw_id = generate_session_id()
        now = datetime.now(timezone.utc)
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    session_hash=hash_session_id(raw_id, self._secret_key),
                    user_id=user_id,
                    created_at=now.isoformat(timespec="microseconds"),
                    expires_at=(now + timedelta(seconds=ttl_seconds)).isoformat(timespec="microseconds"),
                )
            )
            conn.commit()
        return raw_id

    def get(self, raw_id: str) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _sessions.select().where(_sessions.c.session_hash == hash_session_id(raw_id, self._secret_key))
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def resolve(self, raw_id: str) -> int | None:
        """Return the bound user id, or None for unknown or expired sessions.

        An expired row is deleted on the spot so it cannot be resolved again.
        """
        session = self.get(raw_id)
        if session is None:
            return None
        if datetime.fromisoformat(session.expires_at) <= datetime.now(timezone.utc):
            self.delete(raw_id)
            return None
        return session.user_id

    def delete(self, raw_id: str) -> bool:
        """Destroy a session. Returns True if one existed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.delete().where(_sessions.c.session_hash == hash_session_id(raw_id, self._secret_key))
            )
            conn.commit()
        return result.rowcount > 0

    def purge_expired(self) -> int:
        """Delete every expired session. Returns the number removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= now_iso()))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        display_name=row.display_name,
        hashed_password=row.hashed_password,
        role=row.role,
        oauth_provider=row.oauth_provider,
        oauth_subject=row.oauth_subject,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        session_hash=row.session_hash,
        user_id=row.user_id,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )
