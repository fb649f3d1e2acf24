"""
board/rules.py -- Ownership rules that role checks alone cannot express.

  Announcement delete / applicant list: the caller must be the announcement's
      creator. Absent -> NotFoundError; someone else's -> AuthorizationError.
      The two stay distinct so the owner gets a 404 for a stale id while a
      competitor gets a 403.

  Application submit: the announcement must exist and the caller must not have
      applied already. The UNIQUE constraint in board/store.py backs up the
      pre-check, so a concurrent duplicate also ends as ConflictError.

  "My applications": the query is filtered by the caller's id, so there is
      nothing to check after the fact.

Role checks (company vs applicant) happen earlier, in auth/dependencies.py.

Layer rule: board/ imports core/ and auth.models only -- never api/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import User
from board.models import Announcement, Application
from board.store import BoardStore
from core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("jobboard.board")


def is_owner(announcement: Announcement, user: User) -> bool:
    # Compared as strings so int and str ids (path params, JSON) agree.
    return str(announcement.owner_id) == str(user.id)


def get_owned_announcement(store: BoardStore, announcement_id: int, user: User) -> Announcement:
    """Load an announcement the caller owns, or raise NotFoundError / AuthorizationError."""
    announcement = store.get_announcement(announcement_id)
    if announcement is None:
        raise NotFoundError("Announcement not found.")
    if not is_owner(announcement, user):
        logger.warning("User %s denied access to announcement %s owned by %s", user.id, announcement_id, announcement.owner_id)
        raise AuthorizationError("You are not the owner of this announcement.", code="not_owner")
    return announcement


def publish_announcement(
    store: BoardStore,
    user: User,
    title: str,
    company_name: str,
    description: str,
    location: str,
) -> Announcement:
    """Create an announcement owned by the caller and return the stored record."""
    fields = {"titolo": title, "azienda": company_name, "descrizione": description, "località": location}
    missing = [name for name, value in fields.items() if not (value or "").strip()]
    if missing:
        raise ValidationError.for_fields(missing)
    announcement_id = store.create_announcement(
        Announcement(
            title=title.strip(),
            company_name=company_name.strip(),
            description=description.strip(),
            location=location.strip(),
            owner_id=user.id,
        )
    )
    logger.info("User %s published announcement %s", user.id, announcement_id)
    return store.get_announcement(announcement_id)


def delete_announcement(store: BoardStore, announcement_id: int, user: User) -> Announcement:
    """Delete an announcement the caller owns. Returns the deleted record."""
    announcement = get_owned_announcement(store, announcement_id, user)
    if not store.delete_announcement(announcement_id):
        # Deleted by a concurrent request between the check and the delete.
        raise NotFoundError("Announcement not found.")
    logger.info("User %s deleted announcement %s", user.id, announcement_id)
    return announcement


def list_applicants(store: BoardStore, announcement_id: int, user: User) -> tuple[Announcement, list[Application]]:
    """Return the caller's announcement and every application to it, newest first."""
    announcement = get_owned_announcement(store, announcement_id, user)
    return announcement, store.list_applications(announcement_id=announcement_id)


def submit_application(store: BoardStore, user: User, announcement_id: int, message: str) -> Application:
    """Record the caller's application to an announcement.

    Raises:
        ValidationError: empty message.
        NotFoundError:   the announcement does not exist.
        ConflictError:   the caller already applied to it.
    """
    if not (message or "").strip():
        raise ValidationError.for_fields(["descrizioneCandidato"])
    if store.get_announcement(announcement_id) is None:
        raise NotFoundError("Announcement not found.")
    if store.find_application(announcement_id, user.id) is not None:
        raise ConflictError("You have already applied to this announcement.", code="duplicate_application")

    try:
        application_id = store.create_application(
            Application(
                announcement_id=announcement_id,
                applicant_id=user.id,
                applicant_email=user.email,
                message=message.strip(),
            )
        )
    except IntegrityError as exc:
        raise ConflictError(
            "You have already applied to this announcement.",
            code="duplicate_application",
        ) from exc
    logger.info("User %s applied to announcement %s", user.id, announcement_id)
    return store.get_application(application_id)


def my_applications(store: BoardStore, user: User) -> list[Application]:
    return store.list_applications(applicant_id=user.id)
