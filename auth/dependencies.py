"""
auth/dependencies.py -- The authentication gate, as FastAPI Depends() helpers.

Every protected route depends on get_current_identity() (or
get_current_claims() when it needs the token window too). The gate:

  1. Reads the Authorization header. Absent/empty -> missing_credential.
  2. Splits it into scheme and value. Anything other than exactly
     "Bearer <non-empty value>" -> malformed_credential.
  3. Verifies the value with the app's TokenIssuer. Any TokenError
     (malformed, invalid_signature, expired) -> invalid_or_expired_credential.
  4. On success attaches the verified Claims and the derived
     AuthenticatedIdentity to request.state, once, and returns them.

All three failures become the same HTTP 401 for the client (see the
AuthenticationError handler in api/main.py); the specific reason, and the
token sub-reason, only go to the log.

authenticate_bearer() holds the policy and is framework-free, so it is unit
tested without a request object. The FastAPI wrappers only do the plumbing.

Layer rule: may import from fastapi (Request) because this module is part of
the FastAPI dependency injection system. No imports from api/ or core/.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.errors import AuthenticationError, AuthFailure, TokenError
from auth.models import AuthenticatedIdentity, Claims
from auth.tokens import TokenIssuer

logger = logging.getLogger("wishlist.auth")

_SCHEME = "Bearer"


def authenticate_bearer(authorization: str | None, issuer: TokenIssuer) -> Claims:
    """Apply the gate policy to a raw Authorization header value.

    Returns the verified Claims or raises AuthenticationError.
    """
    if not authorization:
        raise AuthenticationError(AuthFailure.missing_credential)

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0] != _SCHEME or not parts[1]:
        raise AuthenticationError(AuthFailure.malformed_credential)

    try:
        return issuer.verify(parts[1])
    except TokenError as exc:
        raise AuthenticationError(AuthFailure.invalid_or_expired_credential) from exc


def get_current_claims(request: Request) -> Claims:
    """Require a valid bearer token. Raises AuthenticationError (-> 401) otherwise.

    Use as a FastAPI dependency:
        @router.post("/refresh-auth-token")
        def route(claims: Claims = Depends(get_current_claims)): ...
    """
    cached = getattr(request.state, "claims", None)
    if cached is not None:
        return cached

    issuer: TokenIssuer = request.app.state.token_issuer
    try:
        claims = authenticate_bearer(request.headers.get("Authorization"), issuer)
    except AuthenticationError as exc:
        cause = exc.__cause__
        logger.warning(
            "Rejected %s %s: %s%s",
            request.method,
            request.url.path,
            exc.reason.value,
            f" ({cause.reason.value})" if isinstance(cause, TokenError) else "",
        )
        raise

    request.state.claims = claims
    request.state.identity = claims.identity
    return claims


def get_current_identity(request: Request) -> AuthenticatedIdentity:
    """Require a valid bearer token and return who the request acts as.

    Use as a FastAPI dependency:
        @router.get("/user-profile")
        def route(identity: AuthenticatedIdentity = Depends(get_current_identity)): ...
    """
    get_current_claims(request)
    return request.state.identity
