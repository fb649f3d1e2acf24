"""
api/routes/v1/announcements.py -- Job announcement routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST   /api/postAnnunci              -- publish (company)
  GET    /api/postAnnunci              -- list all, newest first (public)
  GET    /api/postAnnunci/miei-annunci -- caller's own announcements (company)
  GET    /api/postAnnunci/{id}         -- one announcement (public)
  DELETE /api/postAnnunci/{id}         -- delete (company + owner)

/miei-annunci must be registered before /{announcement_id}, otherwise FastAPI
matches "miei-annunci" as the id and rejects it as a non-integer.

Ownership (delete) is enforced in board/rules.py; the role gate in
auth/dependencies.py runs first.
"""

from typing import Iterable

from fastapi import APIRouter, Depends, Request

from api.models import AnnouncementCreate, AnnouncementDeleted, AnnouncementOut
from auth.dependencies import require_role
from auth.models import ROLE_COMPANY, User
from auth.store import UserStore
from board import rules
from board.models import Announcement
from board.store import BoardStore
from core.errors import NotFoundError

router = APIRouter()

company_only = require_role(ROLE_COMPANY)


def _with_owners(user_store: UserStore, announcements: Iterable[Announcement]) -> list[AnnouncementOut]:
    announcements = list(announcements)
    owners = user_store.get_many(a.owner_id for a in announcements)
    return [AnnouncementOut.from_domain(a, owners.get(a.owner_id)) for a in announcements]


@router.post("/postAnnunci", response_model=AnnouncementOut, status_code=201)
def create_announcement(
    request: Request,
    body: AnnouncementCreate,
    user: User = Depends(company_only),
) -> AnnouncementOut:
    """Publish a new announcement owned by the calling company."""
    board: BoardStore = request.app.state.board
    announcement = rules.publish_announcement(
        board,
        user,
        title=body.title,
        company_name=body.company_name,
        description=body.description,
        location=body.location,
    )
    return AnnouncementOut.from_domain(announcement, user)


@router.get("/postAnnunci", response_model=list[AnnouncementOut])
def list_announcements(request: Request) -> list[AnnouncementOut]:
    """Return every announcement, newest first. An empty board is an empty list."""
    board: BoardStore = request.app.state.board
    return _with_owners(request.app.state.user_store, board.list_announcements())


@router.get("/postAnnunci/miei-annunci", response_model=list[AnnouncementOut])
def list_my_announcements(request: Request, user: User = Depends(company_only)) -> list[AnnouncementOut]:
    """Return the calling company's announcements, newest first."""
    board: BoardStore = request.app.state.board
    return [AnnouncementOut.from_domain(a, user) for a in board.list_announcements(owner_id=user.id)]


@router.get("/postAnnunci/{announcement_id}", response_model=AnnouncementOut)
def get_announcement(request: Request, announcement_id: int) -> AnnouncementOut:
    board: BoardStore = request.app.state.board
    announcement = board.get_announcement(announcement_id)
    if announcement is None:
        raise NotFoundError("Announcement not found.")
    user_store: UserStore = request.app.state.user_store
    return AnnouncementOut.from_domain(announcement, user_store.get_by_id(announcement.owner_id))


@router.delete("/postAnnunci/{announcement_id}", response_model=AnnouncementDeleted)
def delete_announcement(
    request: Request,
    announcement_id: int,
    user: User = Depends(company_only),
) -> AnnouncementDeleted:
    """Delete an announcement. Only its creator may do this (403 otherwise)."""
    board: BoardStore = request.app.state.board
    deleted = rules.delete_announcement(board, announcement_id, user)
    return AnnouncementDeleted(message="Announcement deleted.", id=deleted.id)
