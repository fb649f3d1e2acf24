"""
board/models.py -- Domain dataclasses for job announcements and applications.

These are pure data containers with zero logic. Ownership rules live in
board/rules.py; persistence in board/store.py.

id is None before the record is written to the database.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Announcement:
    """A job posting owned by a company account.

    owner_id is set once at creation and never updated.
    company_name is free text; it need not match the owner's display name.
    """

    title: str
    company_name: str
    description: str
    location: str
    owner_id: int
    id: Optional[int] = None
    published_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class Application:
    """A candidate's submission against an announcement.

    applicant_email is a copy of the applicant's email at submission time.
    Records are never updated or deleted, even when the announcement is.
    """

    announcement_id: int
    applicant_id: int
    applicant_email: str
    message: str
    id: Optional[int] = None
    submitted_at: str = ""  # ISO 8601, set by store on insert
