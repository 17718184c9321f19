"""
api/main.py -- FastAPI application factory for the Wishlist identity backend.

Run with:      uvicorn asgi:app --reload

create_app() is the single place where collaborators are built and wired:
  Settings -> PasswordHasher(rounds), TokenIssuer(secret, ttl, leeway),
  UserStore(database_url), AccountService(store, hasher).
They are stored on app.state and read by routes and the auth gate through the
request. Nothing in auth/ reads configuration on its own, so tests can build
several independently configured apps side by side.

Middleware stack (outermost to innermost; Starlette wraps the most recently
added middleware around the others):
  1. log_requests          -- one access-log line per request
  2. CORSMiddleware        -- CORS headers for the configured browser origins
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Error envelope: every error response is {"error": {"code", "message", ...}}.
Unauthorized outcomes (bad credentials, missing/malformed/invalid tokens) are
401; fatal hashing/signing failures are 500 internal_error, so clients never
confuse "bad credentials" with "service malfunction".
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse, MessageResponse
from api.routes.v1.auth import dev_router
from api.routes.v1.auth import router as auth_router
from auth.accounts import AccountService
from auth.errors import (
    AuthenticationError,
    ConflictError,
    CredentialError,
    FatalError,
    UserNotFoundError,
    ValidationError,
)
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("wishlist.api")


def _error(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, **extra)).model_dump(exclude_none=True),
    )


def create_app(settings: Optional[Settings] = None, user_store: Optional[UserStore] = None) -> FastAPI:
    """Build a fully wired application.

    Args:
        settings:   Configuration. Defaults to the process-wide get_settings().
        user_store: Storage collaborator. Defaults to a UserStore on
                    settings.database_url, owned (and closed) by the app.
    """
    settings = settings or get_settings()
    owns_store = user_store is None
    store = user_store if user_store is not None else UserStore(settings.database_url)

    # ------------------------------------------------------------------
    # Lifespan -- startup log and symmetric teardown of owned resources
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "%s identity API starting up (users=%d, token_ttl=%dh, bcrypt_rounds=%d, debug=%s)",
            settings.app_name,
            store.count_users(),
            settings.token_ttl_hours,
            settings.bcrypt_rounds,
            settings.debug,
        )
        yield
        if owns_store:
            store.close()
        logger.info("%s identity API shutdown complete", settings.app_name)

    app = FastAPI(
        title=f"{settings.app_name} Identity API",
        description="Registration, login, profile management and bearer sessions.",
        version=VERSION,
        lifespan=lifespan,
    )

    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.settings = settings
    app.state.user_store = store
    app.state.hasher = hasher
    app.state.token_issuer = TokenIssuer(
        settings.secret_key,
        ttl=timedelta(seconds=settings.token_ttl_seconds),
        leeway_seconds=settings.token_leeway_seconds,
    )
    app.state.accounts = AccountService(store, hasher)

    # ------------------------------------------------------------------
    # Middleware stack
    # ------------------------------------------------------------------

    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

    @app.middleware("http")
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

    # ------------------------------------------------------------------
    # Routers
    # ------------------------------------------------------------------

    app.include_router(auth_router, prefix="/api/v1", tags=["Account"])
    if settings.debug:
        app.include_router(dev_router, prefix="/api/v1", tags=["Development"])
        logger.warning("Debug mode: development endpoints /create-test-user and /list-users are enabled")

    @app.get("/api/v1/ping", tags=["Health"])
    async def ping() -> MessageResponse:
        return MessageResponse(message="pong")

    @app.get("/api/v1/health", tags=["Health"])
    def health(request: Request) -> HealthResponse:
        """Return API liveness, version and a database round-trip check."""
        db_ok = request.app.state.user_store.ping()
        return HealthResponse(
            status="healthy" if db_ok else "degraded",
            version=VERSION,
            components={"app": "ok", "database": "ok" if db_ok else "error"},
        )

    _register_exception_handlers(app)
    return app


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler answers with the ErrorResponse envelope; clients branch on
# error.code, never on the shape of the body.
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def identity_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Return 400 naming the first field/rule that failed identity validation."""
        return _error(400, "validation_failed", exc.message, field=exc.field, rule=exc.rule.value)

    @app.exception_handler(CredentialError)
    async def credential_handler(request: Request, exc: CredentialError) -> JSONResponse:
        """Return 401 with one generic message for unknown email and wrong password alike."""
        logger.warning("Failed login attempt from %s", request.client.host if request.client else "unknown")
        resp = _error(401, "bad_credentials", CredentialError.MESSAGE)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    @app.exception_handler(AuthenticationError)
    async def authentication_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        """Return 401 for every gate failure. The reason was already logged by the gate."""
        resp = _error(401, "unauthorized", exc.message)
        resp.headers["WWW-Authenticate"] = "Bearer"
        return resp

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return _error(409, "conflict", str(exc), field=exc.field)

    @app.exception_handler(UserNotFoundError)
    async def not_found_handler(request: Request, exc: UserNotFoundError) -> JSONResponse:
        return _error(404, "not_found", "User not found.")

    @app.exception_handler(FatalError)
    async def fatal_handler(request: Request, exc: FatalError) -> JSONResponse:
        """Fail closed. Distinct from 401 so clients never read this as bad credentials."""
        logger.error("Fatal %s on %s %s", type(exc).__name__, request.method, request.url.path)
        return _error(500, "internal_error", "An unexpected error occurred.")

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 422 with structured error when the request body has the wrong shape."""
        return _error(422, "validation_error", "Invalid request format.", detail=str(exc.errors()))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Wrap HTTPException in the error envelope.

        Route handlers raise HTTPException with a {"code", "message"} dict as
        detail. When detail is already structured, use it directly as the error
        field rather than stringifying it.
        """
        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
        return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Anything not mapped above becomes a 500 internal_error.

        The raw exception goes to the log only, never to the response body.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error(500, "internal_error", "An unexpected error occurred.")
