"""
board/store.py -- SQLAlchemy-backed persistence for announcements and applications.

Uses SQLAlchemy Core (not ORM) so the dataclasses in board/models.py remain the
authoritative domain representation.

Pattern: Repository + Data Mapper. BoardStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

UNIQUE(announcement_id, applicant_id) on applications is the real guard
against duplicate submissions. The pre-check in board/rules.py only produces
a friendlier error; two concurrent submissions that both pass it still cannot
both insert.

Both tables use AUTOINCREMENT on SQLite so a deleted announcement id is never
handed out again. Applications outlive their announcement, and a reused id
would attach them to whoever publishes next.

Usage:
    store = BoardStore("sqlite:///jobboard.db")
    ann_id = store.create_announcement(announcement)
    store.list_announcements()
    store.create_application(application)
    store.close()
"""

from typing import Iterable, Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint
from sqlalchemy.engine import Engine

from board.models import Announcement, Application
from core.db import create_store_engine, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_announcements = Table(
    "announcements",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("company_name", String(255), nullable=False),
    Column("description", Text, nullable=False),
    Column("location", String(255), nullable=False),
    Column("published_at", String(32), nullable=False),
    Column("owner_id", Integer, nullable=False),
    sqlite_autoincrement=True,
)

_applications = Table(
    "applications",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("announcement_id", Integer, nullable=False),
    Column("applicant_id", Integer, nullable=False),
    Column("applicant_email", String(255), nullable=False),
    Column("message", Text, nullable=False),
    Column("submitted_at", String(32), nullable=False),
    UniqueConstraint("announcement_id", "applicant_id", name="uq_application_applicant"),
    sqlite_autoincrement=True,
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BoardStore:
    """Repository for Announcement and Application entities."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url, metadata)

    # ------------------------------------------------------------------
    # Announcements
    # ------------------------------------------------------------------

    def create_announcement(self, announcement: Announcement) -> int:
        """Insert an announcement and return its ID. published_at defaults to now."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _announcements.insert().values(
                    title=announcement.title,
                    company_name=announcement.company_name,
                    description=announcement.description,
                    location=announcement.location,
                    published_at=announcement.published_at or now_iso(),
                    owner_id=announcement.owner_id,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_announcement(self, announcement_id: int) -> Optional[Announcement]:
        with self.engine.connect() as conn:
            row = conn.execute(_announcements.select().where(_announcements.c.id == announcement_id)).fetchone()
        return _row_to_announcement(row) if row is not None else None

    def get_announcements(self, announcement_ids: Iterable[int]) -> dict[int, Announcement]:
        """Return {id: Announcement} for the ids that still exist."""
        ids = set(announcement_ids)
        if not ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_announcements.select().where(_announcements.c.id.in_(ids))).fetchall()
        return {r.id: _row_to_announcement(r) for r in rows}

    def list_announcements(self, owner_id: Optional[int] = None) -> list[Announcement]:
        """Return announcements newest first, optionally only those owned by owner_id."""
        query = _announcements.select()
        if owner_id is not None:
            query = query.where(_announcements.c.owner_id == owner_id)
        query = query.order_by(_announcements.c.published_at.desc(), _announcements.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_announcement(r) for r in rows]

    def delete_announcement(self, announcement_id: int) -> bool:
        """Delete an announcement. Returns True if a row was removed.

        Applications referencing it are kept; their announcement resolves to
        None afterwards. Ownership is the caller's responsibility.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_announcements.delete().where(_announcements.c.id == announcement_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def create_application(self, application: Application) -> int:
        """Insert an application and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the applicant already applied
        to this announcement.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _applications.insert().values(
                    announcement_id=application.announcement_id,
                    applicant_id=application.applicant_id,
                    applicant_email=application.applicant_email,
                    message=application.message,
                    submitted_at=application.submitted_at or now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_application(self, application_id: int) -> Optional[Application]:
        with self.engine.connect() as conn:
            row = conn.execute(_applications.select().where(_applications.c.id == application_id)).fetchone()
        return _row_to_application(row) if row is not None else None

    def find_application(self, announcement_id: int, applicant_id: int) -> Optional[Application]:
        """Return the applicant's application to this announcement, if any."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _applications.select().where(
                    (_applications.c.announcement_id == announcement_id)
                    & (_applications.c.applicant_id == applicant_id)
                )
            ).fetchone()
        return _row_to_application(row) if row is not None else None

    def list_applications(
        self,
        applicant_id: Optional[int] = None,
        announcement_id: Optional[int] = None,
    ) -> list[Application]:
        """Return applications newest first, filtered by applicant and/or announcement."""
        query = _applications.select()
        if applicant_id is not None:
            query = query.where(_applications.c.applicant_id == applicant_id)
        if announcement_id is not None:
            query = query.where(_applications.c.announcement_id == announcement_id)
        query = query.order_by(_applications.c.submitted_at.desc(), _applications.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_application(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_announcement(row) -> Announcement:
    return Announcement(
        id=row.id,
        title=row.title,
        company_name=row.company_name,
        description=row.description,
        location=row.location,
        published_at=row.published_at,
        owner_id=row.owner_id,
    )


def _row_to_application(row) -> Application:
    return Application(
        id=row.id,
        announcement_id=row.announcement_id,
        applicant_id=row.applicant_id,
        applicant_email=row.applicant_email,
        message=row.message,
        submitted_at=row.submitted_at,
    )
