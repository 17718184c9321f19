"""
auth/errors.py -- Error taxonomy for the credential and session core.

Four families, each handled at a different place:

  ValidationError      client input defect; the caller fixes it and resubmits.
  CredentialError      login failed. Deliberately generic: the message never
                       says whether the email or the password was wrong.
  TokenError /         a bearer token was rejected. The subtype is kept for
  AuthenticationError  logs; clients only ever see "unauthorized".
  FatalError           the hashing or signing machinery itself failed. Not
                       recoverable per request; surfaces as an internal error,
                       never as "bad credentials".

ConflictError and UserNotFoundError cover the storage-backed account
workflows in auth/accounts.py.

Layer rule: stdlib only. No imports from api/ or core/.
"""

from __future__ import annotations

from enum import Enum


class IdentityError(Exception):
    """Base class for every error raised by the auth/ package."""


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class ValidationRule(str, Enum):
    too_short = "too_short"
    too_long = "too_long"
    invalid_characters = "invalid_characters"
    invalid_format = "invalid_format"
    invalid_enum = "invalid_enum"
    insufficient_complexity = "insufficient_complexity"


class ValidationError(IdentityError):
    """A single field failed a single rule."""

    def __init__(self, field: str, rule: ValidationRule, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.rule = rule
        self.message = message


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class CredentialError(IdentityError):
    """Email/password pair did not authenticate.

    Raised for both "no such user" and "wrong password" so callers cannot leak
    account existence through the error.
    """

    MESSAGE = "Invalid email or password."

    def __init__(self) -> None:
        super().__init__(self.MESSAGE)


# ---------------------------------------------------------------------------
# Tokens and the authentication gate
# ---------------------------------------------------------------------------


class TokenFailure(str, Enum):
    malformed = "malformed"
    invalid_signature = "invalid_signature"
    expired = "expired"


class TokenError(IdentityError):
    def __init__(self, reason: TokenFailure, detail: str = "") -> None:
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)
        self.reason = reason
        self.detail = detail


class AuthFailure(str, Enum):
    missing_credential = "missing_credential"
    malformed_credential = "malformed_credential"
    invalid_or_expired_credential = "invalid_or_expired_credential"


_AUTH_MESSAGES = {
    AuthFailure.missing_credential: "Authorization header is required.",
    AuthFailure.malformed_credential: "Invalid authorization header format.",
    AuthFailure.invalid_or_expired_credential: "Invalid or expired token.",
}


class AuthenticationError(IdentityError):
    """A protected request was rejected by the authentication gate."""

    def __init__(self, reason: AuthFailure) -> None:
        super().__init__(_AUTH_MESSAGES[reason])
        self.reason = reason
        self.message = _AUTH_MESSAGES[reason]


# ---------------------------------------------------------------------------
# Account workflows
# ---------------------------------------------------------------------------


class ConflictError(IdentityError):
    """A username or email is already taken by another account."""

    def __init__(self, field: str) -> None:
        super().__init__(f"{field.capitalize()} already exists.")
        self.field = field


class UserNotFoundError(IdentityError):
    def __init__(self, user_id: int) -> None:
        super().__init__("User not found.")
        self.user_id = user_id


# ---------------------------------------------------------------------------
# Fatal
# ---------------------------------------------------------------------------


class FatalError(IdentityError):
    """Process-level failure. The request fails closed with an internal error."""


class HashingUnavailable(FatalError):
    pass


class SigningUnavailable(FatalError):
    pass
