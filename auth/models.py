"""
auth/models.py -- Domain dataclasses for identity and session entities.

Pattern: Data class (pure data container, almost no logic). Stores and routes
do the work; these types only own domain shape and the few invariants that
must hold for every instance.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Gender(str, Enum):
    male = "male"
    female = "female"
    unknown = "unknown"


def parse_gender(value: str | None) -> Gender:
    """Normalize free-form input to a Gender. Unrecognized or empty -> unknown."""
    try:
        return Gender((value or "").lower())
    except ValueError:
        return Gender.unknown


@dataclass
class User:
    """A registered identity.

    hashed_password is the bcrypt digest, never the plaintext. It is set once
    at registration and replaced wholesale on password change. Response models
    in api/models.py deliberately have no field for it.

    created_at / updated_at are ISO 8601 UTC strings stamped by the store.
    """

    username: str
    email: str
    gender: Gender = Gender.unknown
    id: int | None = None
    hashed_password: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Claims:
    """The payload carried inside a session token.

    Immutable once minted: a refresh produces a new Claims, it never edits
    this one. Timestamps are timezone-aware UTC with whole-second precision,
    matching the JWT NumericDate encoding.
    """

    subject_id: int
    username: str
    email: str
    issued_at: datetime
    expires_at: datetime

    def __post_init__(self) -> None:
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be later than issued_at")

    @property
    def identity(self) -> AuthenticatedIdentity:
        return AuthenticatedIdentity(user_id=self.subject_id, username=self.username, email=self.email)


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Who the current request is acting as, as proven by a verified token."""

    user_id: int
    username: str
    email: str
