"""
api/routes/v1/auth.py -- Account, session and profile REST endpoints.

Routes (all under /api/v1):
  POST /user-register               -- create an account (public)
  POST /user-login                  -- email + password -> bearer token (public)
  POST /send-verification-code      -- placeholder, nothing is delivered (public)
  POST /confirm-verification-code   -- placeholder, fixed code (public)
  GET  /user-profile                -- current user's profile (requires auth)
  POST /update-user-profile         -- partial profile update (requires auth)
  POST /user-logout                 -- no-op, tokens are not revocable (requires auth)
  POST /refresh-auth-token          -- new token from the verified one (requires auth)

Debug-only (mounted by create_app() when settings.debug is true):
  POST /create-test-user            -- random account with a known password
  GET  /list-users                  -- every account, without hashes

Security:
  Login returns the same generic error for unknown email and wrong password
  ("bad_credentials"); AccountService.authenticate() also equalizes timing.
  Cache-Control: no-store on every response that carries a token.
  Handlers that hash passwords are plain `def` so FastAPI runs them in its
  threadpool -- bcrypt never blocks the event loop.

Errors raised here (ValidationError, CredentialError, ConflictError, ...)
are rendered by the exception handlers in api/main.py.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import (
    DevUserResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterResponse,
    TokenResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
    VerificationConfirm,
    VerificationConfirmedResponse,
    VerificationRequest,
    VerificationSentResponse,
)
from auth.accounts import AccountService
from auth.dependencies import get_current_claims, get_current_identity
from auth.models import AuthenticatedIdentity, Claims
from auth.tokens import TokenIssuer

logger = logging.getLogger("wishlist.api")

# Email delivery is not implemented; this is the only code confirm accepts.
_PLACEHOLDER_VERIFICATION_CODE = "123456"
_TEST_USER_PASSWORD = "TestPassword123!"  # noqa: S105 # nosec B105 -- debug-only fixture credential

router = APIRouter()
dev_router = APIRouter()


def _no_store(content: dict, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/user-register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: UserCreate) -> RegisterResponse:
    """Create a new account.

    400 validation_failed names the first offending field and rule, checked in
    the order username, email, gender, password. 409 if the username or email
    is taken.
    """
    accounts: AccountService = request.app.state.accounts
    user = accounts.register(body.username, body.email, body.password, gender=body.gender)
    return RegisterResponse(user=UserResponse.from_user(user))


@router.post("/user-login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a bearer token.

    Uses AccountService.authenticate(), which includes timing equalization. Do
    NOT inline get_by_email() + verify() here -- that re-introduces the timing
    attack.
    """
    accounts: AccountService = request.app.state.accounts
    issuer: TokenIssuer = request.app.state.token_issuer

    user = accounts.authenticate(body.email, body.password)
    token = issuer.issue(user.id, user.username, user.email)
    logger.info("Login succeeded for user_id=%d", user.id)
    return _no_store(
        LoginResponse(
            access_token=token,
            token_type="Bearer",  # noqa: S106 # nosec B106 -- token type, not a password
            expires_in=issuer.expires_in_seconds,
            user=UserResponse.from_user(user),
        ).model_dump(mode="json")
    )


@router.post("/send-verification-code", response_model=VerificationSentResponse)
async def send_verification_code(request: Request, body: VerificationRequest) -> VerificationSentResponse:
    """Placeholder for emailing a verification code.

    The response is identical whether or not the email belongs to an account,
    so this endpoint cannot be used to enumerate users. The code is only
    echoed back in debug mode, for manual testing.
    """
    settings = request.app.state.settings
    logger.warning("Email delivery is not implemented; no verification code was sent")
    return VerificationSentResponse(
        email=body.email,
        expires_in_minutes=settings.verification_code_ttl_minutes,
        code=_PLACEHOLDER_VERIFICATION_CODE if settings.debug else None,
    )


@router.post("/confirm-verification-code", response_model=VerificationConfirmedResponse)
def confirm_verification_code(request: Request, body: VerificationConfirm) -> VerificationConfirmedResponse:
    """Placeholder for confirming an emailed code.

    Unknown email and wrong code fail the same way.
    """
    accounts: AccountService = request.app.state.accounts
    known = accounts.store.get_by_email(body.email) is not None
    code_ok = secrets.compare_digest(body.code.encode("utf-8"), _PLACEHOLDER_VERIFICATION_CODE.encode("utf-8"))
    if not known or not code_ok:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_verification_code", "message": "Invalid verification code."},
        )
    return VerificationConfirmedResponse(email=body.email, verified=True)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/user-profile", response_model=UserResponse)
def get_profile(
    request: Request,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
) -> UserResponse:
    """Return the profile of the authenticated user.

    404 if the account was deleted after the token was issued.
    """
    accounts: AccountService = request.app.state.accounts
    return UserResponse.from_user(accounts.get_profile(identity.user_id))


@router.post("/update-user-profile", response_model=UserResponse)
def update_profile(
    request: Request,
    body: UserUpdate,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
) -> UserResponse:
    """Update username, email, gender and/or password of the authenticated user.

    Only fields present in the body are validated and changed. The current
    token keeps the old username/email until it is refreshed.
    """
    accounts: AccountService = request.app.state.accounts
    user = accounts.update_profile(
        identity.user_id,
        username=body.username,
        email=body.email,
        gender=body.gender,
        password=body.password,
    )
    return UserResponse.from_user(user)


@router.post("/user-logout", response_model=MessageResponse)
async def logout(identity: AuthenticatedIdentity = Depends(get_current_identity)) -> MessageResponse:
    """Acknowledge a logout.

    Tokens are stateless and there is no revocation list, so the token stays
    valid until it expires. Clients must discard it.
    """
    logger.info("Logout for user_id=%d (token remains valid until expiry)", identity.user_id)
    return MessageResponse(message="Logout successful")


@router.post("/refresh-auth-token", response_model=TokenResponse)
async def refresh_token(request: Request, claims: Claims = Depends(get_current_claims)) -> JSONResponse:
    """Exchange a valid token for a new one with a fresh expiry window.

    No password check -- the gate already verified the presented token.
    """
    issuer: TokenIssuer = request.app.state.token_issuer
    token = issuer.refresh(claims)
    return _no_store(
        TokenResponse(
            access_token=token,
            token_type="Bearer",  # noqa: S106 # nosec B106 -- token type, not a password
            expires_in=issuer.expires_in_seconds,
        ).model_dump()
    )


# ---------------------------------------------------------------------------
# Development endpoints (debug only)
# ---------------------------------------------------------------------------


@dev_router.post("/create-test-user", response_model=DevUserResponse, status_code=201)
def create_test_user(request: Request) -> JSONResponse:
    """Create an account with random username/email and a known password."""
    accounts: AccountService = request.app.state.accounts
    username = f"testuser{secrets.token_hex(4)}"
    email = f"test{secrets.token_hex(3)}@test.com"
    user = accounts.register(username, email, _TEST_USER_PASSWORD)
    return _no_store(
        DevUserResponse(
            user=UserResponse.from_user(user),
            username=username,
            password=_TEST_USER_PASSWORD,
        ).model_dump(mode="json"),
        status_code=201,
    )


@dev_router.get("/list-users", response_model=list[UserResponse])
def list_users(request: Request) -> list[UserResponse]:
    accounts: AccountService = request.app.state.accounts
    return [UserResponse.from_user(u) for u in accounts.store.list_users()]
