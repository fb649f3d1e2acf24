"""
API request and response models for the job board REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
board/models.py, which own the internal domain representation. Route handlers
map between the two via the from_domain() factory methods.

Wire names follow the existing frontend (displayName, userType, titolo,
azienda, descrizione, località, ...). Python attributes are English; the JSON
names are aliases. populate_by_name lets route code build models by attribute
name, and FastAPI serializes responses by alias. Role fields accept either
"role" (applicant/company) or the frontend's "userType" (applier/azienda).
"""

from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

from auth.models import User
from board.models import Announcement, Application

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    applicant = "applicant"
    company = "company"


# The frontend calls the role "userType" and spells the values in Italian.
USER_TYPE_BY_ROLE = {RoleEnum.applicant.value: "applier", RoleEnum.company.value: "azienda"}
_ROLE_BY_USER_TYPE = {v: k for k, v in USER_TYPE_BY_ROLE.items()}


def _role_from_wire(value: Any) -> Any:
    if isinstance(value, str):
        return _ROLE_BY_USER_TYPE.get(value, value)
    return value


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register.

    password max_length=72 keeps input inside bcrypt's byte limit for ASCII;
    PasswordHasher rejects longer multi-byte input itself.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str = Field(min_length=1, max_length=72)
    display_name: str = Field(alias="displayName", min_length=1, max_length=255)
    role: RoleEnum = Field(validation_alias=AliasChoices("role", "userType"))

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("role", mode="before")
    @classmethod
    def role_from_user_type(cls, v: Any) -> Any:
        return _role_from_wire(v)

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Display name must not be blank")
        return v


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class RoleSelectionRequest(BaseModel):
    """Request body for POST /api/auth/google/complete."""

    model_config = ConfigDict(populate_by_name=True)

    role: RoleEnum = Field(validation_alias=AliasChoices("role", "userType"))

    @field_validator("role", mode="before")
    @classmethod
    def role_from_user_type(cls, v: Any) -> Any:
        return _role_from_wire(v)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    email: str
    display_name: str = Field(alias="displayName")
    role: str
    user_type: Optional[str] = Field(default=None, alias="userType")

    @classmethod
    def from_domain(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=user.role,
            user_type=USER_TYPE_BY_ROLE.get(user.role),
        )


class UserEnvelope(BaseModel):
    """Response for register, login and /me: {"message"?, "user": {...}}."""

    model_config = ConfigDict(frozen=True)

    message: Optional[str] = None
    user: UserOut


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class UserSummary(BaseModel):
    """Public view of another user, embedded in announcements and applications."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    display_name: str = Field(alias="displayName")
    email: str

    @classmethod
    def from_domain(cls, user: Optional[User]) -> Optional["UserSummary"]:
        if user is None:
            return None
        return cls(id=user.id, display_name=user.display_name, email=user.email)


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------


class AnnouncementCreate(BaseModel):
    """Request body for POST /api/postAnnunci."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str = Field(alias="titolo", min_length=1, max_length=255)
    company_name: str = Field(alias="azienda", min_length=1, max_length=255)
    description: str = Field(alias="descrizione", min_length=1, max_length=10_000)
    location: str = Field(alias="località", min_length=1, max_length=255)


class AnnouncementOut(BaseModel):
    """Full announcement with its creator embedded."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    title: str = Field(alias="titolo")
    company_name: str = Field(alias="azienda")
    description: str = Field(alias="descrizione")
    location: str = Field(alias="località")
    published_at: str = Field(alias="dataPubblicazione")
    created_by: Optional[UserSummary] = Field(alias="createdBy")

    @classmethod
    def from_domain(cls, announcement: Announcement, owner: Optional[User]) -> "AnnouncementOut":
        return cls(
            id=announcement.id,
            title=announcement.title,
            company_name=announcement.company_name,
            description=announcement.description,
            location=announcement.location,
            published_at=announcement.published_at,
            created_by=UserSummary.from_domain(owner),
        )


class AnnouncementDeleted(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    id: int


class AnnouncementBrief(BaseModel):
    """Announcement title and company, embedded in application responses."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    title: str = Field(alias="titolo")
    company_name: str = Field(alias="azienda")

    @classmethod
    def from_domain(cls, announcement: Optional[Announcement]) -> Optional["AnnouncementBrief"]:
        if announcement is None:
            return None
        return cls(id=announcement.id, title=announcement.title, company_name=announcement.company_name)


class AnnouncementListing(AnnouncementBrief):
    """Brief plus location and date, for the applicant's "my applications" page."""

    location: str = Field(alias="località")
    published_at: str = Field(alias="dataPubblicazione")

    @classmethod
    def from_domain(cls, announcement: Optional[Announcement]) -> Optional["AnnouncementListing"]:
        if announcement is None:
            return None
        return cls(
            id=announcement.id,
            title=announcement.title,
            company_name=announcement.company_name,
            location=announcement.location,
            published_at=announcement.published_at,
        )


class AnnouncementDetail(AnnouncementBrief):
    """Brief plus description, heading the owner's applicant list."""

    description: str = Field(alias="descrizione")

    @classmethod
    def from_domain(cls, announcement: Announcement) -> "AnnouncementDetail":
        return cls(
            id=announcement.id,
            title=announcement.title,
            company_name=announcement.company_name,
            description=announcement.description,
        )


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


class ApplicationCreate(BaseModel):
    """Request body for POST /api/candidature."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    announcement_id: int = Field(alias="postAnnunciId")
    message: str = Field(alias="descrizioneCandidato", min_length=1, max_length=5_000)


class ApplicationOut(BaseModel):
    """A submitted application with announcement and applicant embedded."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    announcement: Optional[AnnouncementBrief] = Field(alias="postAnnunci")
    applicant: Optional[UserSummary] = Field(alias="applierId")
    applicant_email: str = Field(alias="emailCandidato")
    message: str = Field(alias="descrizioneCandidato")
    submitted_at: str = Field(alias="dataCandidatura")

    @classmethod
    def from_domain(
        cls,
        application: Application,
        announcement: Optional[Announcement],
        applicant: Optional[User],
    ) -> "ApplicationOut":
        return cls(
            id=application.id,
            announcement=AnnouncementBrief.from_domain(announcement),
            applicant=UserSummary.from_domain(applicant),
            applicant_email=application.applicant_email,
            message=application.message,
            submitted_at=application.submitted_at,
        )


class MyApplicationOut(BaseModel):
    """One row of GET /api/candidature/mie-candidature.

    announcement is None when the announcement was deleted after applying.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    announcement: Optional[AnnouncementListing] = Field(alias="postAnnunci")
    message: str = Field(alias="descrizioneCandidato")
    submitted_at: str = Field(alias="dataCandidatura")

    @classmethod
    def from_domain(cls, application: Application, announcement: Optional[Announcement]) -> "MyApplicationOut":
        return cls(
            id=application.id,
            announcement=AnnouncementListing.from_domain(announcement),
            message=application.message,
            submitted_at=application.submitted_at,
        )


class ApplicantRow(BaseModel):
    """One application in the owner's applicant list."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    applicant: Optional[UserSummary] = Field(alias="applierId")
    applicant_email: str = Field(alias="emailCandidato")
    message: str = Field(alias="descrizioneCandidato")
    submitted_at: str = Field(alias="dataCandidatura")

    @classmethod
    def from_domain(cls, application: Application, applicant: Optional[User]) -> "ApplicantRow":
        return cls(
            id=application.id,
            applicant=UserSummary.from_domain(applicant),
            applicant_email=application.applicant_email,
            message=application.message,
            submitted_at=application.submitted_at,
        )


class ApplicantsResponse(BaseModel):
    """Response for GET /api/candidature/annuncio/{id}."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    announcement: AnnouncementDetail = Field(alias="annuncio")
    applications: list[ApplicantRow] = Field(alias="candidature")


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
