"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and roles.

Two-stage gate applied ahead of protected routes:
  1. get_current_user() resolves the session cookie to a User, or raises
     AuthenticationError (401).
  2. require_role(*roles) builds a dependency that additionally raises
     AuthorizationError (403) when the user's role is missing or outside the
     allowed set.

Handlers receive the resolved User as an explicit parameter:

    @router.post("/postAnnunci")
    def create(user: User = Depends(require_role(ROLE_COMPANY))): ...

Layer rule: no imports from api/ or board/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.authenticator import Authenticator
from auth.models import ROLES, User
from auth.tokens import SESSION_COOKIE
from core.errors import AuthenticationError, AuthorizationError


def get_current_user(request: Request) -> User:
    """Require authentication. Raises AuthenticationError (401) if there is no valid session."""
    authenticator: Authenticator = request.app.state.authenticator
    user = authenticator.current_user(request.cookies.get(SESSION_COOKIE))
    if user is None:
        raise AuthenticationError("Authentication required. Please log in.")
    return user


def require_role(*roles: str) -> Callable[[Request], User]:
    """Return a dependency that admits only users whose role is in `roles`.

    Raises ValueError at wiring time for role names outside ROLES, so a typo
    in a route declaration fails at import rather than locking everyone out.
    """
    unknown = set(roles) - ROLES
    if not roles or unknown:
        raise ValueError(f"require_role needs roles from {sorted(ROLES)}, got {roles!r}")
    allowed = frozenset(roles)

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        if not user.role:
            raise AuthorizationError("Authorization failed. User role is not set.", code="role_missing")
        if user.role not in allowed:
            raise AuthorizationError(
                "Authorization failed. You do not have the required role.",
                code="insufficient_role",
            )
        return user

    dependency.__name__ = f"require_role_{'_'.join(sorted(allowed))}"
    return dependency
