"""
auth/accounts.py -- Registration, login and profile workflows.

AccountService ties the credential core (validation, hashing) to the storage
collaborator. It receives both as constructor arguments and never reaches for
ambient state. Token minting stays with the caller: authenticate() proves who
the user is, the route decides what session to hand out.

Login is constant-time with respect to account existence: an unknown
email still pays for one bcrypt verification, and both failure paths raise the
same CredentialError. Do NOT inline get_by_email() + verify() in a route --
that re-introduces the enumeration leak.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.errors import ConflictError, CredentialError, UserNotFoundError
from auth.models import User, parse_gender
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.validation import validate_profile_update, validate_registration

logger = logging.getLogger("wishlist.auth")


class AccountService:
    def __init__(self, store: UserStore, hasher: PasswordHasher) -> None:
        self.store = store
        self.hasher = hasher

    def register(self, username: str, email: str, password: str, gender: str = "") -> User:
        """Validate, check uniqueness, hash and persist a new identity.

        Raises ValidationError, ConflictError or HashingUnavailable.
        """
        validate_registration(username, email, gender, password)
        if self.store.exists_by_username(username):
            raise ConflictError("username")
        if self.store.exists_by_email(email):
            raise ConflictError("email")

        user = User(
            username=username,
            email=email,
            gender=parse_gender(gender),
            hashed_password=self.hasher.hash(password),
        )
        try:
            self.store.create_user(user)
        except IntegrityError as exc:
            # A concurrent register won the race between the exists check and
            # the insert. Re-check to report which field collided.
            field = "username" if self.store.exists_by_username(username) else "email"
            raise ConflictError(field) from exc
        return user

    def authenticate(self, email: str, password: str) -> User:
        """Return the User for a correct email/password pair.

        Raises CredentialError for unknown email and wrong password alike.
        """
        user = self.store.get_by_email(email)
        if user is None or not user.hashed_password:
            self.hasher.verify_dummy(password)
            raise CredentialError()
        self.hasher.verify(password, user.hashed_password)
        return user

    def get_profile(self, user_id: int) -> User:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def update_profile(
        self,
        user_id: int,
        username: str | None = None,
        email: str | None = None,
        gender: str | None = None,
        password: str | None = None,
    ) -> User:
        """Apply a partial update. Only non-None fields are validated and changed.

        Uniqueness is only checked when a field actually changes, so resending
        your own username is not a conflict. A new password replaces the hash
        wholesale.
        """
        validate_profile_update(username=username, email=email, gender=gender, password=password)
        user = self.get_profile(user_id)
        username_changed = username is not None and username != user.username

        if username_changed:
            if self.store.exists_by_username(username):
                raise ConflictError("username")
            user.username = username
        if email is not None and email != user.email:
            if self.store.exists_by_email(email):
                raise ConflictError("email")
            user.email = email
        if gender is not None:
            user.gender = parse_gender(gender)
        if password is not None:
            user.hashed_password = self.hasher.hash(password)

        try:
            updated = self.store.update_user(user)
        except IntegrityError as exc:
            field = "username" if username_changed and self.store.exists_by_username(username) else "email"
            raise ConflictError(field) from exc
        if not updated:
            raise UserNotFoundError(user_id)
        if password is not None:
            logger.info("Password changed for user_id=%d", user_id)
        return user
