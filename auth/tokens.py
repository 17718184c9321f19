"""
auth/tokens.py -- Session token issuance, verification and refresh.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id as a decimal string), username, email, iat and exp. The
       token is self-contained: verification needs only the secret, never a
       server-side session store.

  Lifecycle: Minted -> Valid -> Expired. There is no Revoked state. Logout
       is a client-side discard; a stolen token stays valid until exp.

  Verification order:
       1. Structure -- every segment must be canonical unpadded base64url,
          header and claims must decode and every claim must have the
          expected type. Failure: TokenFailure.malformed.
       2. Signature -- HMAC over the signing input with SECRET_KEY, and only
          HS256 is accepted (no "none", no algorithm confusion). A token we
          never issued is indistinguishable from a tampered one and fails
          here the same way. Failure: TokenFailure.invalid_signature.
       3. Expiry -- checked by us against the injected clock rather than by
          python-jose, so tests can simulate the passage of time and so the
          leeway is an explicit configuration input.
          Failure: TokenFailure.expired.

  Configuration: secret, TTL, leeway and clock are constructor arguments.
       There is no module-level settings read, so several independently
       configured issuers can coexist (e.g. in tests).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JOSEError, JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.errors import SigningUnavailable, TokenError, TokenFailure
from auth.models import Claims

logger = logging.getLogger("wishlist.auth")

_ALGORITHM = "HS256"
_SEGMENT_RE = re.compile(r"[A-Za-z0-9_-]*")

# Expiry is enforced in verify() against self._clock; python-jose only
# checks the signature and claim encoding.
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
}


class TokenIssuer:
    """Mints and checks signed, time-bounded bearer tokens.

    Usage:
        issuer = TokenIssuer(secret_key, ttl=timedelta(hours=24))
        token = issuer.issue(user.id, user.username, user.email)
        claims = issuer.verify(token)        # raises TokenError
        fresh = issuer.refresh(claims)
    """

    def __init__(
        self,
        secret_key: str,
        ttl: timedelta,
        leeway_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        if leeway_seconds < 0:
            raise ValueError("leeway_seconds must not be negative")
        self._secret_key = secret_key
        self._ttl_seconds = _ttl_to_seconds(ttl)
        self._leeway_seconds = leeway_seconds
        self._clock = clock

    @property
    def expires_in_seconds(self) -> int:
        """Lifetime of a freshly issued token with the configured TTL."""
        return self._ttl_seconds

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, subject_id: int, username: str, email: str, ttl: timedelta | None = None) -> str:
        """Encode a signed JWT for the given identity.

        Args:
            subject_id: Numeric user ID stored in the DB.
            username:   Username at the time of issue.
            email:      Email at the time of issue.
            ttl:        Lifetime override. Defaults to the configured TTL.
        """
        ttl_seconds = _ttl_to_seconds(ttl) if ttl is not None else self._ttl_seconds
        now = int(self._clock())
        claims = Claims(
            subject_id=subject_id,
            username=username,
            email=email,
            issued_at=_from_timestamp(now),
            expires_at=_from_timestamp(now + ttl_seconds),
        )
        return self._sign(claims)

    def refresh(self, claims: Claims) -> str:
        """Mint a brand-new token for claims that already passed verify().

        No credential check happens here -- trust is inherited from the
        caller's verify(). The new expiry is always strictly later than the
        old one, even when the refresh lands in the same second as the
        original issue.
        """
        now = int(self._clock())
        old_exp = int(claims.expires_at.timestamp())
        new_claims = Claims(
            subject_id=claims.subject_id,
            username=claims.username,
            email=claims.email,
            issued_at=_from_timestamp(now),
            expires_at=_from_timestamp(max(now + self._ttl_seconds, old_exp + 1)),
        )
        logger.debug("Refreshed token for user_id=%d", claims.subject_id)
        return self._sign(new_claims)

    def _sign(self, claims: Claims) -> str:
        payload = {
            "sub": str(claims.subject_id),
            "username": claims.username,
            "email": claims.email,
            "iat": int(claims.issued_at.timestamp()),
            "exp": int(claims.expires_at.timestamp()),
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        except (JOSEError, TypeError, ValueError) as exc:
            logger.critical("Token signing failed: %s", type(exc).__name__)
            raise SigningUnavailable("token signing is unavailable") from exc

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str) -> Claims:
        """Decode and verify a JWT. Returns its Claims or raises TokenError."""
        if not isinstance(token, str) or token.count(".") != 2:
            raise TokenError(TokenFailure.malformed, "expected three dot-separated segments")
        if not all(_is_canonical_segment(segment) for segment in token.split(".")):
            raise TokenError(TokenFailure.malformed, "segments must be canonical unpadded base64url")
        try:
            jwt.get_unverified_header(token)
            unverified = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenError(TokenFailure.malformed, str(exc)) from exc
        claims = _claims_from_payload(unverified)

        try:
            jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM], options=_DECODE_OPTIONS)
        except JWTError as exc:
            raise TokenError(TokenFailure.invalid_signature, str(exc)) from exc

        now = self._clock()
        if now > claims.expires_at.timestamp() + self._leeway_seconds:
            raise TokenError(TokenFailure.expired, f"expired at {claims.expires_at.isoformat()}")
        return claims


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ttl_to_seconds(ttl: timedelta) -> int:
    seconds = int(ttl.total_seconds())
    if seconds <= 0:
        raise ValueError("token ttl must be at least one second")
    return seconds


def _is_canonical_segment(segment: str) -> bool:
    # base64 decoding ignores the unused low bits of a segment's last character,
    # so several spellings decode to the same bytes. Only the one we would emit
    # is accepted.
    if not _SEGMENT_RE.fullmatch(segment):
        return False
    raw = segment.encode("ascii")
    try:
        return base64url_encode(base64url_decode(raw)) == raw
    except (TypeError, ValueError):
        return False


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _is_numeric_date(value: object) -> bool:
    # bool is an int subclass; true/false in a JWT is never a date.
    return isinstance(value, int) and not isinstance(value, bool)


def _claims_from_payload(payload: dict) -> Claims:
    """Map a decoded JWT payload onto Claims, rejecting anything off-shape."""
    missing = [k for k in ("sub", "username", "email", "iat", "exp") if k not in payload]
    if missing:
        raise TokenError(TokenFailure.malformed, f"missing claims: {', '.join(missing)}")

    sub = payload["sub"]
    if not isinstance(sub, str) or not (sub.isascii() and sub.isdigit()):
        raise TokenError(TokenFailure.malformed, "sub must be a decimal user id")
    if not isinstance(payload["username"], str) or not isinstance(payload["email"], str):
        raise TokenError(TokenFailure.malformed, "username and email must be strings")
    if not (_is_numeric_date(payload["iat"]) and _is_numeric_date(payload["exp"])):
        raise TokenError(TokenFailure.malformed, "iat and exp must be integer timestamps")

    try:
        return Claims(
            subject_id=int(sub),
            username=payload["username"],
            email=payload["email"],
            issued_at=_from_timestamp(payload["iat"]),
            expires_at=_from_timestamp(payload["exp"]),
        )
    except (ValueError, OverflowError, OSError) as exc:
        raise TokenError(TokenFailure.malformed, str(exc)) from exc
