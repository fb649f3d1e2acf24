"""
api/main.py -- FastAPI application factory for the job board API.

Run with:  uvicorn asgi:app --reload

create_app(settings) is the single place where configuration meets code: it
builds the OAuth registry and password hasher from the Settings it is given,
and the lifespan builds the stores and the Authenticator from the same object.
Everything lands on app.state; nothing is configured at import time.

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- lets the SPA origin send credentialed requests
  3. SlowAPIMiddleware     -- enforces rate limits from api.limiter
  4. SessionMiddleware     -- signed cookie for OAuth state + pending identity
  5. request logging

Lifespan handles startup (stores, Authenticator, session purge task) and
shutdown (cancel purge task, dispose engines) symmetrically.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException
from starlette.middleware.sessions import SessionMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.announcements import router as announcements_router
from api.routes.v1.applications import router as applications_router
from api.routes.v1.auth import router as auth_router
from auth.authenticator import Authenticator
from auth.oauth import build_oauth
from auth.store import SessionStore, UserStore
from auth.tokens import PasswordHasher
from board.store import BoardStore
from core.config import Settings
from core.errors import InfrastructureError, JobBoardError

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("jobboard.api")

_SESSION_PURGE_INTERVAL = 6 * 60 * 60

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired sessions every 6 hours.

    Expired sessions are already rejected on lookup; this only keeps the table
    from growing. CancelledError from task.cancel() during shutdown propagates
    out of asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(_SESSION_PURGE_INTERVAL)
        try:
            removed = app.state.session_store.purge_expired()
        except SQLAlchemyError:
            logger.exception("Session purge failed")
            continue
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the stores and Authenticator from app.state.settings, tear them down on exit."""
    settings: Settings = app.state.settings
    logger.info("Job board API starting up")
    app.state.user_store = UserStore(settings.database_url)
    app.state.session_store = SessionStore(settings.database_url, settings.secret_key)
    app.state.board = BoardStore(settings.database_url)
    app.state.authenticator = Authenticator(
        users=app.state.user_store,
        sessions=app.state.session_store,
        hasher=app.state.hasher,
        session_ttl_seconds=settings.session_ttl_seconds,
        default_external_role=settings.oauth_default_role,
    )
    logger.info("Stores initialized (google_oauth=%s)", settings.google_enabled)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.board.close()
    app.state.session_store.close()
    app.state.user_store.close()
    logger.info("Job board API shutdown complete")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


async def job_board_error_handler(request: Request, exc: JobBoardError) -> JSONResponse:
    """Translate the domain error taxonomy into status + envelope.

    InfrastructureError is logged with its traceback and answered with a
    generic body -- its message is for operators, not clients.
    """
    if isinstance(exc, InfrastructureError):
        logger.error("Infrastructure failure on %s %s", request.method, request.url.path, exc_info=exc)
        error = ErrorDetail(code="internal_error", message="An unexpected error occurred.")
    else:
        error = ErrorDetail(code=exc.code, message=exc.message, detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=error).model_dump())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one {field, message} entry per failed field."""
    fields = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or str(err.get("loc", ("",))[0]),
            "message": err.get("msg", "Invalid value."),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(code="validation_error", message="Request validation failed.", detail=fields)
        ).model_dump(),
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(code="rate_limited", message="Too many requests.", detail=str(exc))
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (404 for unknown routes, 405, ...) in the envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))).model_dump(),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(code="internal_error", message="An unexpected error occurred.")
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Health endpoint
#
# No auth and no rate limit -- load balancers and monitors must not be
# throttled.
# ---------------------------------------------------------------------------


async def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and a database round-trip check."""
    try:
        request.app.state.user_store.ping()
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=__version__,
        components={"app": "ok", "database": database},
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build a fully wired FastAPI app from an explicit Settings object."""
    settings = settings or Settings()

    app = FastAPI(
        title="Job Board API",
        description="Companies post job announcements; candidates browse and apply.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.oauth = build_oauth(settings)
    # SlowAPI looks for app.state.limiter by convention.
    app.state.limiter = limiter

    # add_middleware() prepends, so the last one added is the outermost.
    # Register innermost first: logging -> Session -> SlowAPI -> CORS -> TrustedHost.
    app.middleware("http")(log_requests)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        session_cookie="oauth_state",
        same_site="lax",
        https_only=settings.secure_cookies,
    )
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type"],
        max_age=3600,
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    app.add_exception_handler(JobBoardError, job_board_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(auth_router, prefix="/api", tags=["Auth"])
    app.include_router(announcements_router, prefix="/api", tags=["Announcements"])
    app.include_router(applications_router, prefix="/api", tags=["Applications"])
    app.add_api_route("/api/health", health, methods=["GET"], response_model=HealthResponse, tags=["Health"])

    return app
