"""
core/errors.py -- Error taxonomy shared by auth/, board/ and api/.

Every domain failure is raised as one of these. Each class carries the HTTP
status it maps to and a machine-readable code; api/main.py has a single
exception handler that turns any JobBoardError into the standard
{"error": {"code", "message", "detail"}} envelope.

InfrastructureError is the only one whose message is never shown to the
client -- the handler logs it and answers with a generic 500.

Layer rule: core/ is the kernel. No imports from api/, auth/, or board/.
"""

from __future__ import annotations

from typing import Any


class JobBoardError(Exception):
    """Base class. Subclasses set status_code and a default code."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, code: str | None = None, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.detail = detail


class ValidationError(JobBoardError):
    """Missing or malformed input. detail is a list of {field, message} dicts."""

    status_code = 400
    code = "validation_error"

    @classmethod
    def for_fields(cls, fields: list[str], message: str = "Required field missing.") -> "ValidationError":
        return cls(
            "Request validation failed.",
            detail=[{"field": f, "message": message} for f in fields],
        )


class AuthenticationError(JobBoardError):
    status_code = 401
    code = "unauthorized"


class AuthorizationError(JobBoardError):
    status_code = 403
    code = "forbidden"


class NotFoundError(JobBoardError):
    status_code = 404
    code = "not_found"


class ConflictError(JobBoardError):
    status_code = 409
    code = "conflict"


class InfrastructureError(JobBoardError):
    status_code = 500
    code = "internal_error"
