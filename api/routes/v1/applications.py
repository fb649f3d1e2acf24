"""
api/routes/v1/applications.py -- Job application routes.

Routes:
  POST /api/candidature                   -- apply to an announcement (applicant)
  GET  /api/candidature/mie-candidature   -- caller's applications (applicant)
  GET  /api/candidature/annuncio/{id}     -- applicants for an announcement (company + owner)

One application per (announcement, applicant): a second submission is 409
duplicate_application, backed by a UNIQUE constraint in board/store.py.
"""

from fastapi import APIRouter, Depends, Request

from api.models import ApplicantRow, ApplicantsResponse, AnnouncementDetail, ApplicationCreate, ApplicationOut, MyApplicationOut
from auth.dependencies import require_role
from auth.models import ROLE_APPLICANT, ROLE_COMPANY, User
from auth.store import UserStore
from board import rules
from board.store import BoardStore

router = APIRouter()

applicant_only = require_role(ROLE_APPLICANT)
company_only = require_role(ROLE_COMPANY)


@router.post("/candidature", response_model=ApplicationOut, status_code=201)
def submit_application(
    request: Request,
    body: ApplicationCreate,
    user: User = Depends(applicant_only),
) -> ApplicationOut:
    """Apply to an announcement. 404 if it does not exist, 409 if already applied."""
    board: BoardStore = request.app.state.board
    application = rules.submit_application(board, user, body.announcement_id, body.message)
    announcement = board.get_announcement(application.announcement_id)
    return ApplicationOut.from_domain(application, announcement, user)


@router.get("/candidature/mie-candidature", response_model=list[MyApplicationOut])
def list_my_applications(request: Request, user: User = Depends(applicant_only)) -> list[MyApplicationOut]:
    """Return the caller's applications, newest first, with announcement details.

    Applications to since-deleted announcements are kept, with postAnnunci null.
    """
    board: BoardStore = request.app.state.board
    applications = rules.my_applications(board, user)
    announcements = board.get_announcements(a.announcement_id for a in applications)
    return [MyApplicationOut.from_domain(a, announcements.get(a.announcement_id)) for a in applications]


@router.get("/candidature/annuncio/{announcement_id}", response_model=ApplicantsResponse)
def list_applicants(
    request: Request,
    announcement_id: int,
    user: User = Depends(company_only),
) -> ApplicantsResponse:
    """Return an announcement and everyone who applied to it. Owner only."""
    board: BoardStore = request.app.state.board
    user_store: UserStore = request.app.state.user_store
    announcement, applications = rules.list_applicants(board, announcement_id, user)
    applicants = user_store.get_many(a.applicant_id for a in applications)
    return ApplicantsResponse(
        announcement=AnnouncementDetail.from_domain(announcement),
        applications=[ApplicantRow.from_domain(a, applicants.get(a.applicant_id)) for a in applications],
    )
