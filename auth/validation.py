"""
auth/validation.py -- Syntactic rules for candidate identities.

Pure functions, no I/O. Each validate_* function returns None when the value
is acceptable and raises ValidationError naming the field and the violated
rule otherwise. Only the first violation per field is reported.

The composed validators check fields in a fixed order -- username, email,
gender, password -- and stop at the first failure, so a client fixing one
problem at a time always sees a deterministic next error.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import re

from auth.errors import ValidationError, ValidationRule
from auth.models import Gender

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
EMAIL_MAX_LENGTH = 100
PASSWORD_MIN_LENGTH = 8

_USERNAME_RE = re.compile(r"[A-Za-z0-9_-]+")
_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_UPPER_RE = re.compile(r"[A-Z]")
_LOWER_RE = re.compile(r"[a-z]")
_DIGIT_RE = re.compile(r"[0-9]")

_GENDER_VALUES = frozenset(g.value for g in Gender)


def validate_username(username: str) -> None:
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValidationError("username", ValidationRule.too_short, "username is too short")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError("username", ValidationRule.too_long, "username is too long")
    if not _USERNAME_RE.fullmatch(username):
        raise ValidationError(
            "username",
            ValidationRule.invalid_characters,
            "username can only contain alphanumeric characters, underscores, and hyphens",
        )


def validate_email(email: str) -> None:
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValidationError("email", ValidationRule.too_long, "email is too long")
    if not _EMAIL_RE.fullmatch(email):
        raise ValidationError("email", ValidationRule.invalid_format, "invalid email format")


def validate_gender(gender: str) -> None:
    """Empty is accepted and later stored as Gender.unknown."""
    if gender == "":
        return
    if gender.lower() not in _GENDER_VALUES:
        raise ValidationError("gender", ValidationRule.invalid_enum, "gender must be one of: male, female, unknown")


def validate_password(password: str) -> None:
    """Length first, then complexity. Special characters are never required."""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError("password", ValidationRule.too_short, "password is too short")
    if not (_UPPER_RE.search(password) and _LOWER_RE.search(password) and _DIGIT_RE.search(password)):
        raise ValidationError(
            "password",
            ValidationRule.insufficient_complexity,
            "password must contain at least one uppercase letter, one lowercase letter, and one number",
        )


# ---------------------------------------------------------------------------
# Composed validators
# ---------------------------------------------------------------------------


def validate_registration(username: str, email: str, gender: str, password: str) -> None:
    """Validate a create request. Raises the first failure found."""
    validate_username(username)
    validate_email(email)
    validate_gender(gender)
    validate_password(password)


def validate_profile_update(
    username: str | None = None,
    email: str | None = None,
    gender: str | None = None,
    password: str | None = None,
) -> None:
    """Validate a partial update. Fields left as None are not being changed."""
    if username is not None:
        validate_username(username)
    if email is not None:
        validate_email(email)
    if gender is not None:
        validate_gender(gender)
    if password is not None:
        validate_password(password)
